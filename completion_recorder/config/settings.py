"""Runtime settings."""

from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RECORDER_", extra="ignore")

    app_name: str = "completion-recorder"
    log_level: str = "info"
    # 空串表示只打 stderr，不写日志文件
    log_file_path: str = "logs/completion_recorder.log"

    enable_storage: bool = True
    postgres_dsn: str | None = Field(
        default=None,
        validation_alias=AliasChoices("RECORDER_POSTGRES_DSN", "LLM_POSTGRES_URL"),
    )
    postgres_schema: str = "public"
    postgres_max_connections: int = Field(default=5, ge=1)
    postgres_acquire_timeout_seconds: float = Field(default=3.0, gt=0.0)

    persist_workers: int = Field(default=2, ge=1)
    persist_queue_size: int = Field(default=1000, ge=1)
    shutdown_policy: Literal["drain", "abandon"] = "drain"
    shutdown_timeout_seconds: float = 5.0

    agent_name: str = "IdeAgent"


settings = Settings()
