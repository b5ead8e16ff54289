"""Canonical message schema shared with the graph orchestration side.

Every message serializes as a flat JSON object whose ``type`` field names the
variant (``human``, ``ai``, ``system``, ``tool``, ``function``). Optional
fields are written as explicit ``null``; ``additional_kwargs`` and
``response_metadata`` default to ``{}`` when missing on read.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


# A single text value or an ordered list of text values, never wrapped.
ContentValue = Union[str, list[str]]


class BaseMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    content: ContentValue
    id: str
    name: str | None = None
    example: bool = False
    additional_kwargs: dict[str, Any] = Field(default_factory=dict)
    response_metadata: dict[str, Any] = Field(default_factory=dict)


class HumanMessage(BaseMessage):
    type: Literal["human"] = "human"


class AiMessage(BaseMessage):
    type: Literal["ai"] = "ai"
    invalid_tool_calls: dict[str, Any] | None = None
    tool_calls: dict[str, Any] | None = None


class SystemMessage(BaseMessage):
    type: Literal["system"] = "system"


class ToolMessage(BaseMessage):
    type: Literal["tool"] = "tool"
    tool_call_id: str | None = None
    tool_name: str | None = None


class FunctionMessage(BaseMessage):
    type: Literal["function"] = "function"
    function_call: dict[str, Any] | None = None


Message = Annotated[
    Union[HumanMessage, AiMessage, SystemMessage, ToolMessage, FunctionMessage],
    Field(discriminator="type"),
]

message_adapter: TypeAdapter[Message] = TypeAdapter(Message)
message_list_adapter: TypeAdapter[list[Message]] = TypeAdapter(list[Message])
content_adapter: TypeAdapter[ContentValue] = TypeAdapter(ContentValue)


def dump_message(message: BaseMessage) -> dict[str, Any]:
    return message.model_dump(mode="json")


def dump_messages_json(messages: list[BaseMessage]) -> bytes:
    """Serialize a batch to a UTF-8 JSON array.

    Raises ``ValueError``/``TypeError`` when a metadata value is not JSON
    serializable.
    """

    return message_list_adapter.dump_json(messages)


def load_messages_json(data: bytes | str) -> list[BaseMessage]:
    return message_list_adapter.validate_json(data)


def load_message(data: dict[str, Any]) -> BaseMessage:
    return message_adapter.validate_python(data)
