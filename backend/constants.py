"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for every timing value, limit and wire name the
helper engine depends on.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers or event-name literals elsewhere in the codebase.
- Deployment-specific values live in config.AppConfig, not here.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Room token (launch context)
# =============================================================================

ROOM_TOKEN_QUERY_PARAM: Final[str] = "id"
ROOM_TOKEN_MAX_CHARS: Final[int] = 256

# =============================================================================
# Relay connection
# =============================================================================

# Backoff ladder for reconnect attempts; last slot repeats.
# Mirrors the socket.io client defaults (1s initial, 5s max).
RECONNECT_DELAYS_MS: Final[Tuple[int, ...]] = (1_000, 2_000, 4_000, 5_000)

# 0 == retry forever
RECONNECT_ATTEMPTS_UNBOUNDED: Final[int] = 0

RELAY_CONNECT_TIMEOUT_S: Final[float] = 10.0
RELAY_TRANSPORTS_DEFAULT: Final[Tuple[str, ...]] = ("websocket", "polling")

# =============================================================================
# Presence heartbeat
# =============================================================================

HEARTBEAT_INTERVAL_S: Final[float] = 5.0

# =============================================================================
# Location
# =============================================================================

LOCATION_UPDATE_MESSAGE: Final[str] = "Location Updated"
LOCATION_MIN_INTERVAL_S_DEFAULT: Final[float] = 0.0

# =============================================================================
# Push-to-talk audio
# =============================================================================

AUDIO_SENT_DISPLAY_MS: Final[int] = 1_500
AUDIO_MIME_TYPE_DEFAULT: Final[str] = "audio/webm"

# =============================================================================
# Alert
# =============================================================================

ALERT_CONFIRM_PROMPT: Final[str] = (
    "ARE YOU SURE?\n\nThis will trigger a loud alarm on the owner's phone."
)

# =============================================================================
# Sender labels on the wire
# =============================================================================

SELF_SENDER_LABEL: Final[str] = "Helper"
REMOTE_SENDER_LABEL: Final[str] = "Family"
