"""Per-conversation runtime context."""

from __future__ import annotations

import uuid
from dataclasses import dataclass


def create_conversation_id() -> str:
    """Random identifier used to seed a new conversation."""

    return str(uuid.uuid4())


@dataclass(frozen=True, slots=True)
class ConversationIdentity:
    """Composite key addressing one stored checkpoint document.

    (thread_id, checkpoint_id) is the storage key; prompt_id and session_id are
    carried alongside and overwritten by the latest write.
    """

    thread_id: str
    prompt_id: str
    session_id: str
    checkpoint_id: str

    @property
    def storage_key(self) -> tuple[str, str]:
        return (self.thread_id, self.checkpoint_id)


@dataclass(frozen=True, slots=True)
class ModelArgs:
    model_id: str
    provider_id: str | None = None
