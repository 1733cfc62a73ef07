# pylint: disable=missing-module-docstring,missing-function-docstring

from constants import RECONNECT_DELAYS_MS
from session.retry import (
    ReconnectAttempt,
    get_reconnect_delay_ms,
    next_attempt,
    reset_attempt,
    should_retry,
)


def test_backoff_ladder_then_cap() -> None:
    delays = [
        get_reconnect_delay_ms(attempt=ReconnectAttempt(attempt=n))
        for n in range(7)
    ]
    assert delays == [1000, 2000, 4000, 5000, 5000, 5000, 5000]
    assert max(delays) == RECONNECT_DELAYS_MS[-1]


def test_empty_ladder_means_immediate_retry() -> None:
    assert get_reconnect_delay_ms(attempt=ReconnectAttempt(attempt=3), delays_ms=()) == 0


def test_attempt_counter_is_immutable() -> None:
    first = reset_attempt()
    second = next_attempt(first)

    assert first.attempt == 0
    assert second.attempt == 1


def test_zero_max_attempts_is_unbounded() -> None:
    assert should_retry(attempt=ReconnectAttempt(attempt=10_000), max_attempts=0)


def test_bounded_budget() -> None:
    assert should_retry(attempt=ReconnectAttempt(attempt=0), max_attempts=2)
    assert should_retry(attempt=ReconnectAttempt(attempt=1), max_attempts=2)
    assert not should_retry(attempt=ReconnectAttempt(attempt=2), max_attempts=2)
