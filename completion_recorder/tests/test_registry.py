import pytest
from pydantic import ValidationError

from completion_recorder.config.settings import Settings
from completion_recorder.core import registry
from completion_recorder.core.errors import StoreUnavailableError
from completion_recorder.core.registry import (
    DEFAULT_POSTGRES_DSN,
    MessageHandlerConfig,
    create_conversation_id,
    init_message_handler,
    resolve_connection_string,
)
from completion_recorder.storage.gateway import MessageGateway, NullMessageGateway


def _clear_dsn_env(monkeypatch) -> None:
    monkeypatch.delenv("RECORDER_POSTGRES_DSN", raising=False)
    monkeypatch.delenv("LLM_POSTGRES_URL", raising=False)


def test_explicit_connection_string_wins(monkeypatch):
    monkeypatch.setenv("LLM_POSTGRES_URL", "postgresql://env-host/db")
    config = MessageHandlerConfig(postgres_connection_string="postgresql://explicit/db")
    assert resolve_connection_string(config, Settings()) == "postgresql://explicit/db"


def test_environment_connection_string_used_when_not_configured(monkeypatch):
    _clear_dsn_env(monkeypatch)
    monkeypatch.setenv("LLM_POSTGRES_URL", "postgresql://env-host/db")
    assert resolve_connection_string(MessageHandlerConfig(), Settings()) == "postgresql://env-host/db"

    monkeypatch.setenv("RECORDER_POSTGRES_DSN", "postgresql://prefixed/db")
    assert resolve_connection_string(MessageHandlerConfig(), Settings()) == "postgresql://prefixed/db"


def test_default_connection_string_as_last_resort(monkeypatch):
    _clear_dsn_env(monkeypatch)
    assert resolve_connection_string(MessageHandlerConfig(postgres_connection_string="  "), Settings()) == DEFAULT_POSTGRES_DSN


def test_disabled_storage_uses_noop_gateway(monkeypatch):
    def fail(**kwargs):
        raise AssertionError("gateway must not be built when storage is disabled")

    monkeypatch.setattr(registry, "create_gateway", fail)
    handler = init_message_handler(MessageHandlerConfig(enable_storage=False))
    assert isinstance(handler.gateway, NullMessageGateway)
    assert handler.storage_enabled is False


def test_unreachable_store_degrades_to_noop(monkeypatch):
    def unreachable(**kwargs):
        raise StoreUnavailableError("cannot connect")

    monkeypatch.setattr(registry, "create_gateway", unreachable)
    handler = init_message_handler(MessageHandlerConfig(postgres_connection_string="postgresql://nowhere/db"))
    assert isinstance(handler.gateway, NullMessageGateway)


def test_reachable_store_is_used(monkeypatch):
    captured: dict = {}

    class StubGateway(MessageGateway):
        def append_messages(self, messages, identity) -> None:
            pass

    def build(**kwargs):
        captured.update(kwargs)
        return StubGateway()

    monkeypatch.setattr(registry, "create_gateway", build)
    handler = init_message_handler(
        MessageHandlerConfig(postgres_connection_string="postgresql://db/x", shutdown_policy="abandon")
    )
    assert isinstance(handler.gateway, StubGateway)
    assert handler.storage_enabled is True
    assert captured["dsn"] == "postgresql://db/x"
    assert captured["shutdown_policy"] == "abandon"


def test_conversation_ids_are_unique():
    ids = {create_conversation_id() for _ in range(200)}
    assert len(ids) == 200
    assert all(len(item) == 36 for item in ids)


def test_unknown_shutdown_policy_rejected_by_settings(monkeypatch):
    monkeypatch.setenv("RECORDER_SHUTDOWN_POLICY", "later")
    with pytest.raises(ValidationError):
        Settings()

    monkeypatch.setenv("RECORDER_SHUTDOWN_POLICY", "abandon")
    assert Settings().shutdown_policy == "abandon"
