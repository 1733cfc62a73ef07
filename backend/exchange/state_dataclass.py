"""
Authoritative audio exchange state container.

Rules:
- Pure data model, frozen.
- Contains ALL state the exchange reducer may ever need.
- The chunk buffer itself is NOT here: it is the mutable
  AudioCaptureSession owned by the runtime, keyed by capture_id.
"""
from __future__ import annotations

from dataclasses import dataclass

from constants import AUDIO_SENT_DISPLAY_MS
from exchange.enums import AudioState


@dataclass(frozen=True)
class ExchangeState:
    """Immutable snapshot of push-to-talk state."""

    state: AudioState = AudioState.IDLE

    # Monotonic per begin; 0 == no capture yet
    capture_id: int = 0

    # Release arrived while the mic was still being acquired
    end_requested: bool = False

    # Recoverable-error flag for the last capture action
    last_error: str | None = None
    permission_denied: bool = False

    # Transient SENT display (0 disables the SENT state)
    sent_display_ms: int = AUDIO_SENT_DISPLAY_MS

    # Counters for observability
    clips_finalized: int = 0
    clips_transmitted: int = 0
