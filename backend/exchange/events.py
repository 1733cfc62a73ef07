"""
Event definitions for the audio exchange reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- No clocks, no timers, no async, no side effects.

Device/timer events carry capture_id so late results from an earlier
capture can be recognized and ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ExchangeEventType(str, Enum):
    """Canonical event types understood by the exchange reducer."""

    # User intent
    BEGIN_CAPTURE = "BEGIN_CAPTURE"
    END_CAPTURE = "END_CAPTURE"
    ABORT_CAPTURE = "ABORT_CAPTURE"

    # Device
    SOURCE_ACQUIRED = "SOURCE_ACQUIRED"
    SOURCE_FAILED = "SOURCE_FAILED"

    # Finalize pipeline
    CLIP_FINALIZED = "CLIP_FINALIZED"

    # Timers
    SENT_TIMEOUT = "SENT_TIMEOUT"


@dataclass(frozen=True)
class ExchangeEvent:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: ExchangeEventType
    ts_ms: int


@dataclass(frozen=True)
class CaptureScopedEvent(ExchangeEvent):
    """Event tied to one capture. Stale capture_ids are ignored."""

    capture_id: int


# =============================================================================
# User intent
# =============================================================================

@dataclass(frozen=True)
class BeginCapture(ExchangeEvent):
    """Press / toggle-on."""


@dataclass(frozen=True)
class EndCapture(ExchangeEvent):
    """Release / release-outside / pointer-leave / toggle-off."""


@dataclass(frozen=True)
class AbortCapture(ExchangeEvent):
    """Teardown while a capture is open. Buffer is discarded, nothing sent."""


# =============================================================================
# Device
# =============================================================================

@dataclass(frozen=True)
class SourceAcquired(CaptureScopedEvent):
    """Microphone granted and streaming."""


@dataclass(frozen=True)
class SourceFailed(CaptureScopedEvent):
    """Microphone refused or unavailable."""
    reason: str
    permission_denied: bool = False


# =============================================================================
# Finalize / timers
# =============================================================================

@dataclass(frozen=True)
class ClipFinalized(CaptureScopedEvent):
    """Clip assembled, appended locally, and (maybe) handed to the relay."""
    transmitted: bool
    payload_len: int = 0


@dataclass(frozen=True)
class SentTimeout(CaptureScopedEvent):
    """SENT display time elapsed."""
