"""Message handler: maps requests/events and hands batches to the gateway."""

from __future__ import annotations

from completion_recorder.core.context import ConversationIdentity, ModelArgs
from completion_recorder.core.events import CompletionEvent, LanguageModelRequest
from completion_recorder.core.mapper import map_from_event, map_request_messages
from completion_recorder.core.messages import BaseMessage
from completion_recorder.storage.gateway import MessageGateway
from completion_recorder.util.logger import logger


class MessageHandler:
    def __init__(self, gateway: MessageGateway) -> None:
        self.gateway = gateway

    @property
    def storage_enabled(self) -> bool:
        return self.gateway.enabled

    def save_completion_request(
        self,
        request: LanguageModelRequest,
        identity: ConversationIdentity,
        model: ModelArgs,
    ) -> None:
        batch = map_request_messages(request, identity, model)
        if not batch:
            return
        self.append_messages(batch, identity)

    def save_completion_event(
        self,
        event: CompletionEvent,
        identity: ConversationIdentity,
        request: LanguageModelRequest | None,
        model: ModelArgs,
    ) -> None:
        message = map_from_event(event, identity.checkpoint_id, request, model)
        if message is None:
            return
        self.append_messages([message], identity)

    def append_messages(self, messages: list[BaseMessage], identity: ConversationIdentity) -> None:
        try:
            self.gateway.append_messages(messages, identity)
        except Exception as exc:
            logger.error(
                "gateway append failed thread_id=%s checkpoint_id=%s: %s",
                identity.thread_id,
                identity.checkpoint_id,
                exc,
            )

    def close(self) -> None:
        self.gateway.close()
