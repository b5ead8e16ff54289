import asyncio

import pytest

from completion_recorder.core.context import ConversationIdentity, ModelArgs
from completion_recorder.core.errors import CompletionError, RateLimitExceededError
from completion_recorder.core.events import (
    CompletionIntent,
    LanguageModelRequest,
    LanguageModelRequestMessage,
    Role,
    StartMessageEvent,
    StopEvent,
    TextEvent,
    TokenUsage,
    UsageUpdateEvent,
)
from completion_recorder.core.handler import MessageHandler
from completion_recorder.core.messages import AiMessage, HumanMessage
from completion_recorder.core.stream_tap import tap_completion_stream
from completion_recorder.storage.gateway import MessageGateway, NullMessageGateway


IDENTITY = ConversationIdentity(thread_id="t1", prompt_id="p1", session_id="s1", checkpoint_id="c1")
MODEL = ModelArgs(model_id="test-model")
REQUEST = LanguageModelRequest(
    prompt_id="p1",
    intent=CompletionIntent.USER_PROMPT,
    messages=[LanguageModelRequestMessage(role=Role.USER, content="hi")],
)


class RecordingGateway(MessageGateway):
    def __init__(self) -> None:
        self.calls: list[tuple[list, ConversationIdentity]] = []

    def append_messages(self, messages, identity) -> None:
        self.calls.append((list(messages), identity))


class ExplodingGateway(MessageGateway):
    def append_messages(self, messages, identity) -> None:
        raise RuntimeError("database on fire")


async def _source(items):
    for item in items:
        await asyncio.sleep(0)
        yield item


async def _collect(stream) -> list:
    return [item async for item in stream]


def test_error_then_ok_forwards_both_and_persists_once():
    gateway = RecordingGateway()
    handler = MessageHandler(gateway)
    failure = RateLimitExceededError("slow down")
    text = TextEvent(text="hello")

    out = asyncio.run(_collect(tap_completion_stream(_source([failure, text]), handler, IDENTITY, REQUEST, MODEL)))

    assert out == [failure, text]
    assert out[0] is failure
    assert len(gateway.calls) == 1
    (messages, identity), = gateway.calls
    assert identity == IDENTITY
    assert isinstance(messages[0], AiMessage)
    assert messages[0].content == "hello"
    assert messages[0].response_metadata["intent"] == "UserPrompt"


def test_control_events_are_forwarded_but_not_persisted():
    gateway = RecordingGateway()
    handler = MessageHandler(gateway)
    items = [
        StartMessageEvent(message_id="m1"),
        TextEvent(text="a"),
        UsageUpdateEvent(usage=TokenUsage(input_tokens=1)),
        StopEvent(),
    ]

    out = asyncio.run(_collect(tap_completion_stream(_source(items), handler, IDENTITY, REQUEST, MODEL)))

    assert out == items
    assert [call[0][0].content for call in gateway.calls] == ["a", "STOP"]


def test_without_handler_stream_is_returned_untouched():
    source = _source([TextEvent(text="x")])
    assert tap_completion_stream(source, None, IDENTITY, REQUEST, MODEL) is source


def test_gateway_failure_never_reaches_consumer():
    handler = MessageHandler(ExplodingGateway())
    items = [TextEvent(text="a"), TextEvent(text="b")]
    out = asyncio.run(_collect(tap_completion_stream(_source(items), handler, IDENTITY, None, MODEL)))
    assert out == items


def test_source_exception_propagates_unchanged():
    async def broken():
        yield TextEvent(text="a")
        raise CompletionError("stream reset", code="stream_reset")

    handler = MessageHandler(NullMessageGateway())
    with pytest.raises(CompletionError) as excinfo:
        asyncio.run(_collect(tap_completion_stream(broken(), handler, IDENTITY, None, MODEL)))
    assert excinfo.value.code == "stream_reset"


def test_save_completion_request_submits_one_batch():
    gateway = RecordingGateway()
    handler = MessageHandler(gateway)
    request = LanguageModelRequest(
        messages=[
            LanguageModelRequestMessage(role=Role.SYSTEM, content="sys"),
            LanguageModelRequestMessage(role=Role.USER, content="hi"),
        ]
    )
    handler.save_completion_request(request, IDENTITY, MODEL)
    handler.save_completion_request(LanguageModelRequest(), IDENTITY, MODEL)

    assert len(gateway.calls) == 1
    messages, _ = gateway.calls[0]
    assert [m.content for m in messages] == ["sys", "hi"]
    assert isinstance(messages[1], HumanMessage)
    assert all(m.id == "t1" for m in messages)
