"""Request / completion-event -> canonical message mapping."""

from __future__ import annotations

import json
from typing import Any

from completion_recorder.config.settings import settings
from completion_recorder.core.context import ConversationIdentity, ModelArgs, create_conversation_id
from completion_recorder.core.events import (
    CONTROL_EVENTS,
    CompletionEvent,
    LanguageModelRequest,
    LanguageModelRequestMessage,
    Role,
    StopEvent,
    TextEvent,
    ThinkingEvent,
    ToolUseEvent,
)
from completion_recorder.core.messages import AiMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from completion_recorder.observability.metrics import emit_counter
from completion_recorder.util.logger import logger


STOP_SENTINEL = "STOP"


def _fallback_id(candidate: str | None) -> str:
    if candidate:
        return candidate
    return create_conversation_id()


def _to_json_text(value: Any, *, site: str) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        logger.error("failed to serialize %s: %s", site, exc)
        emit_counter("recorder_serialization_failures", labels={"site": site})
        return ""


def _request_content_text(message: LanguageModelRequestMessage) -> str:
    if isinstance(message.content, str):
        return message.content
    try:
        parts = [part.model_dump(mode="json") for part in message.content]
    except (TypeError, ValueError) as exc:
        logger.error("failed to serialize request message content: %s", exc)
        emit_counter("recorder_serialization_failures", labels={"site": "request_content"})
        return ""
    return _to_json_text(parts, site="request_content")


def build_response_metadata(request: LanguageModelRequest | None, model: ModelArgs) -> dict[str, Any]:
    """Sparse metadata map: model_id always, request fields only when set."""

    metadata: dict[str, Any] = {"model_id": model.model_id}
    if model.provider_id:
        metadata["provider_id"] = model.provider_id
    if request is None:
        return metadata
    if request.temperature is not None:
        metadata["temperature"] = request.temperature
    if request.intent is not None:
        metadata["intent"] = request.intent.value
    if request.mode is not None:
        metadata["mode"] = request.mode.value
    if request.prompt_id is not None:
        metadata["prompt_id"] = request.prompt_id
    return metadata


def map_from_request(
    message: LanguageModelRequestMessage,
    identity: ConversationIdentity,
    request: LanguageModelRequest | None,
    model: ModelArgs,
) -> BaseMessage | None:
    common = {
        "content": _request_content_text(message),
        "id": _fallback_id(identity.thread_id),
        "name": settings.agent_name,
        "response_metadata": build_response_metadata(request, model),
    }
    if message.role == Role.USER:
        return HumanMessage(**common)
    if message.role == Role.SYSTEM:
        return SystemMessage(**common)
    if message.role == Role.ASSISTANT:
        return AiMessage(**common)
    raise TypeError(f"unsupported request role: {message.role!r}")


def map_from_event(
    event: CompletionEvent,
    checkpoint_id: str,
    request: LanguageModelRequest | None,
    model: ModelArgs,
) -> BaseMessage | None:
    """Map one completion event; control signals map to ``None``."""

    if isinstance(event, CONTROL_EVENTS):
        return None

    response_metadata = build_response_metadata(request, model)
    message_id = _fallback_id(checkpoint_id)

    if isinstance(event, TextEvent):
        return AiMessage(
            content=event.text,
            id=message_id,
            name=settings.agent_name,
            response_metadata=response_metadata,
        )
    if isinstance(event, ThinkingEvent):
        additional_kwargs: dict[str, Any] = {"thinking": event.text}
        if event.signature is not None:
            additional_kwargs["signature"] = event.signature
        return AiMessage(
            content=event.text,
            id=message_id,
            name=settings.agent_name,
            additional_kwargs=additional_kwargs,
            response_metadata=response_metadata,
        )
    if isinstance(event, StopEvent):
        return AiMessage(
            content=STOP_SENTINEL,
            id=message_id,
            name=settings.agent_name,
            response_metadata=response_metadata,
        )
    if isinstance(event, ToolUseEvent):
        tool_use = event.tool_use
        return ToolMessage(
            content=_to_json_text(tool_use.input, site="tool_input"),
            id=_fallback_id(tool_use.id),
            name=settings.agent_name,
            tool_call_id=tool_use.id,
            tool_name=tool_use.name,
            additional_kwargs={
                "raw_input": tool_use.raw_input,
                "is_input_complete": tool_use.is_input_complete,
            },
            response_metadata=response_metadata,
        )
    raise TypeError(f"unsupported completion event: {type(event).__name__}")


def map_request_messages(
    request: LanguageModelRequest,
    identity: ConversationIdentity,
    model: ModelArgs,
) -> list[BaseMessage]:
    batch: list[BaseMessage] = []
    for item in request.messages:
        mapped = map_from_request(item, identity, request, model)
        if mapped is not None:
            batch.append(mapped)
    return batch
