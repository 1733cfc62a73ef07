"""
Reconnect policy helpers.

Purpose:
- Centralize relay reconnect rules (backoff ladder, attempt bound)
- Let ConnectionManager make deterministic retry decisions

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass

from constants import RECONNECT_ATTEMPTS_UNBOUNDED, RECONNECT_DELAYS_MS


# =============================================================================
# Retry State
# =============================================================================

@dataclass(frozen=True)
class ReconnectAttempt:
    """
    Immutable reconnect attempt counter.

    Semantics:
    - attempt == 0: no reconnect scheduled since the last successful join.
    - attempt >= 1: the Nth reconnect has been scheduled.
    """
    attempt: int


def next_attempt(current: ReconnectAttempt) -> ReconnectAttempt:
    """Return a new ReconnectAttempt with attempt incremented by 1."""
    return ReconnectAttempt(attempt=current.attempt + 1)


def reset_attempt() -> ReconnectAttempt:
    """Returns a fresh attempt counter (after a successful join)."""
    return ReconnectAttempt(attempt=0)


# =============================================================================
# Policy
# =============================================================================

def should_retry(*, attempt: ReconnectAttempt, max_attempts: int) -> bool:
    """
    Returns True if another reconnect may be scheduled.

    attempt = number of reconnects already scheduled
    max_attempts = 0 means unbounded
    """
    if max_attempts == RECONNECT_ATTEMPTS_UNBOUNDED:
        return True
    return attempt.attempt < max_attempts


def get_reconnect_delay_ms(
    *,
    attempt: ReconnectAttempt,
    delays_ms: tuple[int, ...] = RECONNECT_DELAYS_MS,
) -> int:
    """
    Returns delay before reconnect attempt N (exponential, capped).

    The attempt index is clamped to the last slot of the ladder.
    """
    if not delays_ms:
        return 0
    idx = min(attempt.attempt, len(delays_ms) - 1)
    return delays_ms[idx]
