"""Storage backend selection helpers."""

from __future__ import annotations

from completion_recorder.config.settings import settings
from completion_recorder.storage.gateway import MessageGateway, NullMessageGateway
from completion_recorder.storage.postgres_store import PostgresMessageStore


def create_gateway(
    *,
    dsn: str,
    enable_storage: bool = True,
    schema: str | None = None,
    shutdown_policy: str | None = None,
) -> MessageGateway:
    """Build the configured gateway.

    Raises ``StoreUnavailableError``/``StoreConfigError`` when Postgres is
    selected but cannot be used.
    """

    if not enable_storage:
        return NullMessageGateway()
    return PostgresMessageStore(
        dsn=dsn,
        schema=schema or settings.postgres_schema,
        max_connections=settings.postgres_max_connections,
        acquire_timeout=settings.postgres_acquire_timeout_seconds,
        workers=settings.persist_workers,
        queue_size=settings.persist_queue_size,
        shutdown_policy=shutdown_policy or settings.shutdown_policy,
        shutdown_timeout=settings.shutdown_timeout_seconds,
    )


__all__ = ["MessageGateway", "NullMessageGateway", "PostgresMessageStore", "create_gateway"]
