"""Pass-through tap that records completion events without touching the stream."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator

from completion_recorder.core.context import ConversationIdentity, ModelArgs
from completion_recorder.core.errors import CompletionError
from completion_recorder.core.events import CompletionStreamItem, LanguageModelRequest
from completion_recorder.core.handler import MessageHandler
from completion_recorder.util.logger import logger


def tap_completion_stream(
    stream: AsyncIterable[CompletionStreamItem],
    handler: MessageHandler | None,
    identity: ConversationIdentity,
    request: LanguageModelRequest | None,
    model: ModelArgs,
) -> AsyncIterable[CompletionStreamItem]:
    """Wrap ``stream`` so every successful event is also persisted.

    Without a handler the original stream is returned as-is. Elements are
    forwarded unchanged and in order; ``CompletionError`` elements are
    forwarded but never mapped or persisted.
    """

    if handler is None:
        return stream
    return _tap(stream, handler, identity, request, model)


async def _tap(
    stream: AsyncIterable[CompletionStreamItem],
    handler: MessageHandler,
    identity: ConversationIdentity,
    request: LanguageModelRequest | None,
    model: ModelArgs,
) -> AsyncIterator[CompletionStreamItem]:
    async for item in stream:
        if not isinstance(item, CompletionError):
            try:
                handler.save_completion_event(item, identity, request, model)
            except Exception as exc:  # pragma: no cover - recording must never break the stream
                logger.warning(
                    "failed to record completion event kind=%s thread_id=%s: %s",
                    getattr(item, "kind", type(item).__name__),
                    identity.thread_id,
                    exc,
                )
        yield item
