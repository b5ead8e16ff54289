"""In-process counters for recorder health (dropped batches, anomalies)."""

from __future__ import annotations

import threading
from collections import Counter

from completion_recorder.util.logger import logger


_COUNTERS: Counter[tuple[str, tuple[tuple[str, str], ...]]] = Counter()
_COUNTERS_LOCK = threading.Lock()


def _label_key(labels: dict | None) -> tuple[tuple[str, str], ...]:
    return tuple(sorted((str(k), str(v)) for k, v in (labels or {}).items()))


def emit_counter(name: str, value: int = 1, labels: dict | None = None) -> None:
    with _COUNTERS_LOCK:
        _COUNTERS[(name, _label_key(labels))] += value
    logger.debug("metric counter name=%s value=%s labels=%s", name, value, labels or {})


def counter_value(name: str, labels: dict | None = None) -> int:
    """Current value of one counter series; an unlabeled query sums all series."""

    with _COUNTERS_LOCK:
        if labels is None:
            return sum(count for (series, _), count in _COUNTERS.items() if series == name)
        return _COUNTERS.get((name, _label_key(labels)), 0)


def reset_counters() -> None:
    with _COUNTERS_LOCK:
        _COUNTERS.clear()
