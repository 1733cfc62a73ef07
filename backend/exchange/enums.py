"""
Push-to-talk control states.

Rules:
- This enum defines ONLY the audio exchange states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in exchange.reducer.
"""

from __future__ import annotations

from enum import Enum


class AudioState(str, Enum):
    """
    IDLE:        nothing captured, mic released
    ACQUIRING:   mic requested, waiting for the device (permission prompt)
    CAPTURING:   chunks are being buffered
    FINALIZING:  mic stopping, clip being assembled/encoded/sent
    SENT:        transient display state after a transmitted clip
    """

    IDLE = "IDLE"
    ACQUIRING = "ACQUIRING"
    CAPTURING = "CAPTURING"
    FINALIZING = "FINALIZING"
    SENT = "SENT"


# States from which a new capture may begin
BEGIN_ALLOWED: frozenset[AudioState] = frozenset({AudioState.IDLE, AudioState.SENT})

# States in which a capture is still open (not yet handed to finalize)
CAPTURE_OPEN: frozenset[AudioState] = frozenset({
    AudioState.ACQUIRING,
    AudioState.CAPTURING,
})
