"""Structured logging bridge."""

from __future__ import annotations

from completion_recorder.util.logger import logger


def log_event(event: str, **payload: object) -> None:
    fields = " ".join(f"{key}={payload[key]}" for key in sorted(payload))
    logger.info("event=%s %s", event, fields)
