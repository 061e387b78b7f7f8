"""
Lightweight telemetry helpers.

Nothing is shipped to an external backend: events become structured log lines
and counters live in memory so tests and /debug/stats can read them.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections import deque
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("aifriend.telemetry")

_COUNTERS: dict[str, int] = {}
# Most recent samples per metric; /debug/stats reports over this window
LATENCY_WINDOW = 500
_LATENCIES: dict[str, deque[float]] = {}


def log_event(event_name: str, **fields: Any) -> None:
    """
    Structured log event. Caller must redact user text before passing it in.

    Side Effects:
        - Writes to logger (info level)
    """
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """
    Increment an in-memory counter and emit a debug log.

    Side Effects:
        - Modifies _COUNTERS dict (in-memory state)
    """
    value = _COUNTERS.get(name, 0) + increment
    _COUNTERS[name] = value
    logger.debug("counter=%s value=%s", name, value)
    return value


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """Record wall-clock seconds spent in the block under ``metric_name``."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.debug("timing=%s seconds=%.6f", metric_name, elapsed)
        _LATENCIES.setdefault(metric_name, deque(maxlen=LATENCY_WINDOW)).append(elapsed)


def get_counters() -> dict[str, int]:
    return dict(_COUNTERS)


def get_latency_summary() -> dict[str, dict[str, float]]:
    """Count and mean latency per timed block over the last ``LATENCY_WINDOW`` samples."""
    summary: dict[str, dict[str, float]] = {}
    for name, samples in _LATENCIES.items():
        if samples:
            summary[name] = {"count": len(samples), "avg": sum(samples) / len(samples)}
    return summary


def reset_telemetry() -> None:
    """
    Clear counters and latencies (used by tests).

    Side Effects:
        - Clears in-memory state
    """
    _COUNTERS.clear()
    _LATENCIES.clear()
