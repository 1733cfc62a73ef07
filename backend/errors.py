"""
Exception taxonomy for the helper engine.

Categories:
- Configuration: missing/invalid room token. Terminal, never retried.
- Device: location or microphone refused/unavailable. Recoverable,
  re-triable on the next explicit user action.
- Transport: relay connection failures. Never leave ConnectionManager;
  surfaced only as LinkState changes.
- Protocol: malformed inbound relay payloads. Logged and dropped.
- Codec: audio payload text that cannot be decoded.
"""

from __future__ import annotations


class HelperEngineError(Exception):
    """Base class for all helper engine errors."""


# -------------------------
# Configuration
# -------------------------

class ConfigurationError(HelperEngineError):
    """Launch/configuration problem. The engine must stay inert."""


class MissingToken(ConfigurationError):
    """
    Raised when the launch context carries no usable room token.

    The session cannot be identified, so nothing is connected and no
    listeners are registered. Recovery requires a new launch context.
    """


# -------------------------
# Devices
# -------------------------

class DeviceError(HelperEngineError):
    """Base class for position/audio source failures."""


class PermissionDenied(DeviceError):
    """The user (or platform) refused access to the device."""


class SourceUnavailable(DeviceError):
    """The device exists in principle but cannot deliver data right now."""


# -------------------------
# Transport / protocol
# -------------------------

class TransportError(HelperEngineError):
    """Relay transport failed to connect, emit or disconnect."""


class RelayProtocolError(HelperEngineError):
    """Base class for relay wire-format errors."""


class MalformedPayload(RelayProtocolError):
    """
    Raised when an inbound relay payload does not match the expected shape.

    The event is unsafe to append to the log and must be dropped.
    """


class AudioCodecError(HelperEngineError):
    """Encoded audio text could not be turned back into bytes."""
