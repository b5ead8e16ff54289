"""Non-intrusive recorder for language-model completion streams."""

from completion_recorder.core.context import ConversationIdentity, ModelArgs, create_conversation_id
from completion_recorder.core.handler import MessageHandler
from completion_recorder.core.registry import MessageHandlerConfig, init_message_handler
from completion_recorder.core.stream_tap import tap_completion_stream

__all__ = [
    "ConversationIdentity",
    "MessageHandler",
    "MessageHandlerConfig",
    "ModelArgs",
    "create_conversation_id",
    "init_message_handler",
    "tap_completion_stream",
]
