"""Coarse task-path label for a stored batch, derived from intent metadata."""

from __future__ import annotations

from collections.abc import Iterable

from completion_recorder.core.events import CompletionIntent
from completion_recorder.core.messages import BaseMessage
from completion_recorder.observability.metrics import emit_counter
from completion_recorder.util.logger import logger


TASK_PATH_STANDARD = "standard"
TASK_PATH_SUMMARIZATION = "summarization"
TASK_PATH_CONTEXT_SUMMARIZATION = "context_summarization"

SUMMARIZATION_TAG = CompletionIntent.THREAD_SUMMARIZATION.value
CONTEXT_SUMMARIZATION_TAG = CompletionIntent.THREAD_CONTEXT_SUMMARIZATION.value


def extract_intents(messages: Iterable[BaseMessage]) -> list[str]:
    intents: list[str] = []
    for message in messages:
        intent = message.response_metadata.get("intent")
        if isinstance(intent, str):
            intents.append(intent)
    return intents


def classify_task_path(messages: Iterable[BaseMessage]) -> str:
    intents = extract_intents(messages)

    task_path = TASK_PATH_STANDARD
    if intents and all(intent == SUMMARIZATION_TAG for intent in intents):
        task_path = TASK_PATH_SUMMARIZATION
    elif intents and all(intent == CONTEXT_SUMMARIZATION_TAG for intent in intents):
        task_path = TASK_PATH_CONTEXT_SUMMARIZATION

    # Mixed batches stay "standard"; only flag them.
    for tag, label in (
        (SUMMARIZATION_TAG, TASK_PATH_SUMMARIZATION),
        (CONTEXT_SUMMARIZATION_TAG, TASK_PATH_CONTEXT_SUMMARIZATION),
    ):
        if task_path != label and tag in intents:
            logger.error("task path anomaly: not all intents in batch were %s intents=%s", tag, intents)
            emit_counter("recorder_task_path_anomaly", labels={"tag": tag})

    return task_path
