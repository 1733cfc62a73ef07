"""
Pure audio exchange reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).

Both interaction shapes (press-and-hold, toggle) reduce to BeginCapture /
EndCapture, so there is exactly one state machine.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from exchange.commands import (
    AcquireSource,
    CancelTimer,
    Command,
    DiscardCapture,
    FinalizeClip,
    LogEvent,
    ReleaseSource,
    StartTimer,
)
from exchange.enums import BEGIN_ALLOWED, CAPTURE_OPEN, AudioState
from exchange.events import (
    AbortCapture,
    BeginCapture,
    CaptureScopedEvent,
    ClipFinalized,
    EndCapture,
    ExchangeEvent,
    ExchangeEventType,
    SentTimeout,
    SourceAcquired,
    SourceFailed,
)
from exchange.state_dataclass import ExchangeState


# =============================================================================
# Invariants
# =============================================================================
# - capture_id is bumped ONLY on an accepted BeginCapture
# - At most one capture is open: BeginCapture outside IDLE/SENT is ignored
# - A mic granted for a capture that is no longer ACQUIRING is released
# - Every capture that reaches FINALIZING produces exactly one ClipFinalized

# =============================================================================
# Timer IDs
# =============================================================================

TIMER_SENT_DISPLAY = "sent_display"


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: ExchangeState,
    event: ExchangeEvent,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "audio_state": state.state.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "capture_id": state.capture_id,
            "details": details or {},
        }
    )


def _transition(
    prev: ExchangeState,
    new: ExchangeState,
    event: ExchangeEvent,
    source: str,
    commands: tuple[Command, ...] = (),
) -> tuple[ExchangeState, tuple[Command, ...]]:
    """
    New state plus commands, state_changed log first.

    Commands may re-enter the runtime (device results), so the log for
    this transition must be emitted before any of them run.
    """
    return new, (
        _log(
            new,
            event,
            "state_changed",
            {
                "from_state": prev.state.value,
                "to_state": new.state.value,
                "source": source,
            },
        ),
    ) + commands


def _ignore(
    state: ExchangeState, event: ExchangeEvent, reason: str
) -> tuple[ExchangeState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _is_current(state: ExchangeState, event: CaptureScopedEvent) -> bool:
    return event.capture_id == state.capture_id


# =============================================================================
# Reducer
# =============================================================================

def reduce(
    state: ExchangeState, event: ExchangeEvent
) -> tuple[ExchangeState, tuple[Command, ...]]:
    """
    Pure reducer for the push-to-talk state machine.

    Given the current exchange state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects
    """

    # ------------------------------------------------------------------
    # User intent
    # ------------------------------------------------------------------
    if isinstance(event, BeginCapture):
        if state.state not in BEGIN_ALLOWED:
            return _ignore(state, event, "capture_already_active")

        cmds: tuple[Command, ...] = ()
        if state.state is AudioState.SENT:
            cmds += (CancelTimer(timer_id=TIMER_SENT_DISPLAY),)

        capture_id = state.capture_id + 1
        new_state = replace(
            state,
            state=AudioState.ACQUIRING,
            capture_id=capture_id,
            end_requested=False,
            last_error=None,
            permission_denied=False,
        )
        return _transition(
            state, new_state, event, "begin_capture",
            cmds + (AcquireSource(capture_id=capture_id),),
        )

    if isinstance(event, EndCapture):
        if state.state is AudioState.CAPTURING:
            new_state = replace(state, state=AudioState.FINALIZING)
            return _transition(
                state, new_state, event, "end_capture",
                (FinalizeClip(capture_id=state.capture_id),),
            )

        if state.state is AudioState.ACQUIRING:
            if state.end_requested:
                return _ignore(state, event, "end_already_requested")
            new_state = replace(state, end_requested=True)
            return new_state, (_log(new_state, event, "end_deferred_until_acquired"),)

        return _ignore(state, event, "not_capturing")

    if isinstance(event, AbortCapture):
        if state.state in CAPTURE_OPEN:
            new_state = replace(state, state=AudioState.IDLE, end_requested=False)
            return _transition(
                state, new_state, event, "abort_capture",
                (DiscardCapture(capture_id=state.capture_id),),
            )

        if state.state is AudioState.SENT:
            new_state = replace(state, state=AudioState.IDLE)
            return _transition(
                state, new_state, event, "abort_sent_display",
                (CancelTimer(timer_id=TIMER_SENT_DISPLAY),),
            )

        # FINALIZING completes on its own; IDLE has nothing to abort
        return _ignore(state, event, "nothing_to_abort")

    # ------------------------------------------------------------------
    # Device
    # ------------------------------------------------------------------
    if isinstance(event, SourceAcquired):
        if state.state is not AudioState.ACQUIRING or not _is_current(state, event):
            # Orphaned mic (aborted / superseded capture): release it
            return state, (
                ReleaseSource(capture_id=event.capture_id),
                _log(state, event, "ignore", {"reason": "stale_source_released"}),
            )

        if state.end_requested:
            new_state = replace(state, state=AudioState.FINALIZING, end_requested=False)
            return _transition(
                state, new_state, event, "acquired_after_release",
                (FinalizeClip(capture_id=state.capture_id),),
            )

        new_state = replace(state, state=AudioState.CAPTURING)
        return _transition(state, new_state, event, "source_acquired")

    if isinstance(event, SourceFailed):
        if state.state is not AudioState.ACQUIRING or not _is_current(state, event):
            return _ignore(state, event, "stale_source_failure")

        new_state = replace(
            state,
            state=AudioState.IDLE,
            end_requested=False,
            last_error=event.reason,
            permission_denied=event.permission_denied,
        )
        return _transition(
            state, new_state, event, "source_failed",
            (
                _log(new_state, event, "capture_failed", {
                    "reason": event.reason,
                    "permission_denied": event.permission_denied,
                }),
            ),
        )

    # ------------------------------------------------------------------
    # Finalize pipeline
    # ------------------------------------------------------------------
    if isinstance(event, ClipFinalized):
        if state.state is not AudioState.FINALIZING or not _is_current(state, event):
            return _ignore(state, event, "stale_clip_finalized")

        counted = replace(
            state,
            clips_finalized=state.clips_finalized + 1,
            clips_transmitted=state.clips_transmitted + (1 if event.transmitted else 0),
        )
        details_log = _log(counted, event, "clip_finalized", {
            "transmitted": event.transmitted,
            "payload_len": event.payload_len,
        })

        if event.transmitted and state.sent_display_ms > 0:
            new_state = replace(counted, state=AudioState.SENT)
            return _transition(
                state, new_state, event, "clip_sent",
                (
                    details_log,
                    StartTimer(
                        timer_id=TIMER_SENT_DISPLAY,
                        duration_ms=state.sent_display_ms,
                        timeout_event_type=ExchangeEventType.SENT_TIMEOUT,
                        capture_id=state.capture_id,
                    ),
                ),
            )

        new_state = replace(counted, state=AudioState.IDLE)
        return _transition(state, new_state, event, "clip_finalized", (details_log,))

    if isinstance(event, SentTimeout):
        if state.state is not AudioState.SENT or not _is_current(state, event):
            return _ignore(state, event, "stale_sent_timeout")

        new_state = replace(state, state=AudioState.IDLE)
        return _transition(state, new_state, event, "sent_display_elapsed")

    return _ignore(state, event, "unknown_event")
