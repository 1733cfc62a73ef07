"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No session logic
- No wire names or protocol constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    AUDIO_MIME_TYPE_DEFAULT,
    AUDIO_SENT_DISPLAY_MS,
    HEARTBEAT_INTERVAL_S,
    LOCATION_MIN_INTERVAL_S_DEFAULT,
    RECONNECT_ATTEMPTS_UNBOUNDED,
    RELAY_CONNECT_TIMEOUT_S,
    RELAY_TRANSPORTS_DEFAULT,
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the server app and HelperSession factory.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Relay
    # ------------------------------------------------------------------

    relay_url: str
    relay_transports: tuple[str, ...]
    relay_connect_timeout_s: float
    reconnect_attempts: int  # 0 == unbounded

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------

    heartbeat_interval_s: float

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    location_policy: str
    location_min_interval_s: float
    location_on_join: bool

    # ------------------------------------------------------------------
    # Audio
    # ------------------------------------------------------------------

    audio_sent_display_ms: int
    audio_mime_type: str

    # ------------------------------------------------------------------
    # Launch context / control API
    # ------------------------------------------------------------------

    launch_url: str | None
    api_host: str
    api_port: int

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        transports = os.environ.get("RELAY_TRANSPORTS")
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            enable_json_logs=_env_bool("ENABLE_JSON_LOGS", True),

            relay_url=os.environ.get("RELAY_URL", "http://localhost:5000"),
            relay_transports=(
                tuple(t.strip() for t in transports.split(",") if t.strip())
                if transports
                else RELAY_TRANSPORTS_DEFAULT
            ),
            relay_connect_timeout_s=float(
                os.environ.get("RELAY_CONNECT_TIMEOUT_S", RELAY_CONNECT_TIMEOUT_S)
            ),
            reconnect_attempts=int(
                os.environ.get("RELAY_RECONNECT_ATTEMPTS", RECONNECT_ATTEMPTS_UNBOUNDED)
            ),

            heartbeat_interval_s=float(
                os.environ.get("HEARTBEAT_INTERVAL_S", HEARTBEAT_INTERVAL_S)
            ),

            location_policy=os.environ.get("LOCATION_POLICY", "every_sample"),
            location_min_interval_s=float(
                os.environ.get("LOCATION_MIN_INTERVAL_S", LOCATION_MIN_INTERVAL_S_DEFAULT)
            ),
            location_on_join=_env_bool("LOCATION_ON_JOIN", True),

            audio_sent_display_ms=int(
                os.environ.get("AUDIO_SENT_DISPLAY_MS", AUDIO_SENT_DISPLAY_MS)
            ),
            audio_mime_type=os.environ.get("AUDIO_MIME_TYPE", AUDIO_MIME_TYPE_DEFAULT),

            launch_url=os.environ.get("HELPER_LAUNCH_URL"),
            api_host=os.environ.get("API_HOST", "127.0.0.1"),
            api_port=int(os.environ.get("API_PORT", "8000")),
        )
