"""
Metrics helpers for observability.

- Durations use monotonic time; ts_ms stays wall-clock
- One metric == one log event, no aggregation
- timed() is the only way to measure a duration, so timers cannot leak
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event, now_ms


def record_value(
    name: str,
    value: int | float,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a single point-in-time metric (sizes, counts)."""
    log_event({
        "ts_ms": now_ms(),
        "event_type": "METRIC_VALUE",
        "metric": name,
        "value": value,
        "session_id": session_id,
        "details": details or {},
    })


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[dict[str, Any]]:
    """
    Measure the wrapped block and emit METRIC_TIMER exactly once.

    The yielded dict is merged into details, so the block can attach
    facts it only learns while running:

        with timed("audio_finalize", session_id=sid) as extra:
            ...
            extra["transmitted"] = ok

    Exceptions inside the block still produce the metric.
    """
    extra: dict[str, Any] = {}
    start_ns = time.monotonic_ns()
    try:
        yield extra
    finally:
        log_event({
            "ts_ms": now_ms(),
            "event_type": "METRIC_TIMER",
            "metric": name,
            "value_ms": (time.monotonic_ns() - start_ns) // 1_000_000,
            "session_id": session_id,
            "details": {**(details or {}), **extra},
        })
