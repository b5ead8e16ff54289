"""Upstream request and completion-event models consumed by the recorder."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from completion_recorder.core.errors import CompletionError


class Role(str, Enum):
    USER = "user"
    SYSTEM = "system"
    ASSISTANT = "assistant"


class CompletionIntent(str, Enum):
    USER_PROMPT = "UserPrompt"
    TOOL_RESULTS = "ToolResults"
    THREAD_SUMMARIZATION = "ThreadSummarization"
    THREAD_CONTEXT_SUMMARIZATION = "ThreadContextSummarization"
    CREATE_FILE = "CreateFile"
    EDIT_FILE = "EditFile"
    INLINE_ASSIST = "InlineAssist"
    TERMINAL_INLINE_ASSIST = "TerminalInlineAssist"
    GENERATE_GIT_COMMIT_MESSAGE = "GenerateGitCommitMessage"


class CompletionMode(str, Enum):
    NORMAL = "Normal"
    MAX = "Max"


class StopReason(str, Enum):
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    TOOL_USE = "tool_use"
    REFUSAL = "refusal"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- request content parts ---


class TextContent(_Frozen):
    type: Literal["text"] = "text"
    text: str


class ThinkingContent(_Frozen):
    type: Literal["thinking"] = "thinking"
    text: str
    signature: str | None = None


class RedactedThinkingContent(_Frozen):
    type: Literal["redacted_thinking"] = "redacted_thinking"
    data: str


class ImageContent(_Frozen):
    type: Literal["image"] = "image"
    source: str
    width: int = 0
    height: int = 0


class ToolUseContent(_Frozen):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    raw_input: str = ""
    input: Any = None
    is_input_complete: bool = True


class ToolResultContent(_Frozen):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    tool_name: str
    is_error: bool = False
    content: str = ""
    output: Any = None


RequestContent = Annotated[
    Union[
        TextContent,
        ThinkingContent,
        RedactedThinkingContent,
        ImageContent,
        ToolUseContent,
        ToolResultContent,
    ],
    Field(discriminator="type"),
]


class LanguageModelRequestMessage(_Frozen):
    role: Role
    content: Union[str, list[RequestContent]] = Field(default_factory=list)
    cache: bool = False


class LanguageModelRequest(_Frozen):
    thread_id: str | None = None
    prompt_id: str | None = None
    intent: CompletionIntent | None = None
    mode: CompletionMode | None = None
    messages: list[LanguageModelRequestMessage] = Field(default_factory=list)
    stop: list[str] = Field(default_factory=list)
    temperature: float | None = None


# --- completion events ---


class LanguageModelToolUse(_Frozen):
    id: str
    name: str
    raw_input: str = ""
    input: Any = None
    is_input_complete: bool = True


class TokenUsage(_Frozen):
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0


class StatusUpdateEvent(_Frozen):
    kind: Literal["status_update"] = "status_update"
    status: str
    detail: dict[str, Any] = Field(default_factory=dict)


class StartMessageEvent(_Frozen):
    kind: Literal["start_message"] = "start_message"
    message_id: str


class TextEvent(_Frozen):
    kind: Literal["text"] = "text"
    text: str


class ThinkingEvent(_Frozen):
    kind: Literal["thinking"] = "thinking"
    text: str
    signature: str | None = None


class StopEvent(_Frozen):
    kind: Literal["stop"] = "stop"
    reason: StopReason = StopReason.END_TURN


class ToolUseEvent(_Frozen):
    kind: Literal["tool_use"] = "tool_use"
    tool_use: LanguageModelToolUse


class UsageUpdateEvent(_Frozen):
    kind: Literal["usage_update"] = "usage_update"
    usage: TokenUsage


CompletionEvent = Union[
    StatusUpdateEvent,
    StartMessageEvent,
    TextEvent,
    ThinkingEvent,
    StopEvent,
    ToolUseEvent,
    UsageUpdateEvent,
]

# Control signals, not conversation content.
CONTROL_EVENTS = (StatusUpdateEvent, StartMessageEvent, UsageUpdateEvent)

# One element of an upstream completion stream: an event or a yielded failure.
CompletionStreamItem = Union[CompletionEvent, CompletionError]
