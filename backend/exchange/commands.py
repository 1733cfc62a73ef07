"""
Side-effect command definitions for the audio exchange.

Rules:
- Commands are declarative requests for side effects.
- Emitted by exchange.reducer, executed by exchange.runtime.
- No behavior, no async, no I/O, no clocks.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from exchange.events import ExchangeEventType


class CommandType(str, Enum):
    """Stable discriminants used for logging and runtime dispatch."""

    # Device
    ACQUIRE_SOURCE = "ACQUIRE_SOURCE"
    RELEASE_SOURCE = "RELEASE_SOURCE"

    # Clip
    FINALIZE_CLIP = "FINALIZE_CLIP"
    DISCARD_CAPTURE = "DISCARD_CAPTURE"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Device
# =============================================================================

@dataclass(frozen=True)
class AcquireSource(Command):
    """Open a capture session and start the microphone for capture_id."""
    capture_id: int
    command_type: CommandType = CommandType.ACQUIRE_SOURCE


@dataclass(frozen=True)
class ReleaseSource(Command):
    """Stop the microphone (idempotent)."""
    capture_id: int
    command_type: CommandType = CommandType.RELEASE_SOURCE


# =============================================================================
# Clip
# =============================================================================

@dataclass(frozen=True)
class FinalizeClip(Command):
    """
    Stop the mic, assemble + encode the buffered chunks, transmit if
    JOINED, always append the Self clip, then report ClipFinalized.
    """
    capture_id: int
    command_type: CommandType = CommandType.FINALIZE_CLIP


@dataclass(frozen=True)
class DiscardCapture(Command):
    """Stop the mic and drop the buffer without appending or sending."""
    capture_id: int
    command_type: CommandType = CommandType.DISCARD_CAPTURE


# =============================================================================
# Timers
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """Start (or replace) a timer that emits timeout_event_type for capture_id."""
    timer_id: str
    duration_ms: int
    timeout_event_type: ExchangeEventType
    capture_id: int
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Structured log line; runtime adds session context."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
