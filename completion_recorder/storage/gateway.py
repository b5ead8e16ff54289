"""Persistence gateway abstraction for recorded messages."""

from __future__ import annotations

from abc import ABC, abstractmethod

from completion_recorder.core.context import ConversationIdentity
from completion_recorder.core.messages import BaseMessage
from completion_recorder.util.logger import logger


class MessageGateway(ABC):
    enabled = True

    @abstractmethod
    def append_messages(self, messages: list[BaseMessage], identity: ConversationIdentity) -> None:
        """Best-effort append of a batch.

        Called from inside the consumer's stream poll, so implementations must
        return without waiting on I/O (hand the write to a background worker)
        and must never raise storage errors to the caller.
        """
        pass

    def close(self) -> None:
        pass


class NullMessageGateway(MessageGateway):
    """Gateway for configurations without storage: batches are discarded."""

    enabled = False

    def append_messages(self, messages: list[BaseMessage], identity: ConversationIdentity) -> None:
        logger.debug(
            "storage disabled, discarding batch size=%d thread_id=%s checkpoint_id=%s",
            len(messages),
            identity.thread_id,
            identity.checkpoint_id,
        )
