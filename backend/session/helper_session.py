"""
Helper session composition root.

Responsibilities:
- Resolve the room token BEFORE anything else is built
- Wire one ConnectionManager to every component of the session
- Start and tear down the session as a unit

Still NOT responsible for:
- Any relay, device or capture logic (components own that)
- HTTP concerns (see server.routes)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING
from uuid import uuid4

from alert.trigger import AlertTrigger, ConfirmFn
from audio.capture import AudioSource
from chat.relay import ChatRelay
from devices.push_audio import PushAudioSource
from devices.push_position import PushPositionSource
from errors import ConfigurationError
from exchange.runtime import AudioExchangeStateMachine
from history.entry_log import EntryLog
from location.reporter import LocationPolicy, LocationReporter
from location.source import PositionSource
from observability.logger import log_event, now_ms
from relay.socketio_transport import SocketIOTransport
from relay.transport import RelayTransport
from session.connection import ConnectionManager
from session.heartbeat import PresenceHeartbeat
from session.room_token import LaunchContext, RoomToken, resolve_room_token

if TYPE_CHECKING:
    from config import AppConfig


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


@dataclass
class HelperSession:
    """
    One HelperSession == one room token == one relay session.

    Built only through HelperSession.build(); a launch context without a
    usable token raises MissingToken and leaves nothing behind (no
    transport, no listeners, no tasks).
    """

    session_id: str
    room_token: RoomToken
    connection: ConnectionManager
    entry_log: EntryLog
    heartbeat: PresenceHeartbeat
    location: LocationReporter
    audio: AudioExchangeStateMachine
    chat: ChatRelay
    alert: AlertTrigger
    position_source: PositionSource
    audio_source: AudioSource
    created_at: float = field(default_factory=time.time)

    _started: bool = field(default=False, init=False)
    _closed: bool = field(default=False, init=False)

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        *,
        config: AppConfig,
        launch_context: LaunchContext,
        transport: RelayTransport | None = None,
        position_source: PositionSource | None = None,
        audio_source: AudioSource | None = None,
        confirm: ConfirmFn | None = None,
        session_id: str | None = None,
    ) -> HelperSession:
        """
        Resolve the token and wire the session.

        Raises:
            MissingToken if the launch context carries no usable token.
            ConfigurationError if the location policy is unknown.
        """
        room_token = resolve_room_token(launch_context)

        try:
            policy = LocationPolicy(config.location_policy)
        except ValueError as e:
            raise ConfigurationError(
                f"unknown location policy: {config.location_policy!r}"
            ) from e

        session_id = session_id or _new_session_id()

        if transport is None:
            transport = SocketIOTransport(
                url=config.relay_url,
                transports=config.relay_transports,
                connect_timeout_s=config.relay_connect_timeout_s,
            )
        if position_source is None:
            position_source = PushPositionSource()
        if audio_source is None:
            audio_source = PushAudioSource(mime_type=config.audio_mime_type)

        connection = ConnectionManager(
            transport=transport,
            room_token=room_token,
            session_id=session_id,
            max_reconnect_attempts=config.reconnect_attempts,
        )
        entry_log = EntryLog(session_id=session_id)

        session = cls(
            session_id=session_id,
            room_token=room_token,
            connection=connection,
            entry_log=entry_log,
            heartbeat=PresenceHeartbeat(
                connection=connection,
                interval_s=config.heartbeat_interval_s,
            ),
            location=LocationReporter(
                connection=connection,
                source=position_source,
                policy=policy,
                min_interval_s=config.location_min_interval_s,
                request_on_join=config.location_on_join,
            ),
            audio=AudioExchangeStateMachine(
                connection=connection,
                source=audio_source,
                entry_log=entry_log,
                sent_display_ms=config.audio_sent_display_ms,
                mime_type=config.audio_mime_type,
            ),
            chat=ChatRelay(connection=connection, entry_log=entry_log),
            alert=AlertTrigger(connection=connection, confirm=confirm),
            position_source=position_source,
            audio_source=audio_source,
        )

        log_event({
            "ts_ms": now_ms(),
            "event_type": "SESSION_BUILT",
            "session_id": session_id,
            "location_policy": policy.value,
            "heartbeat_interval_s": config.heartbeat_interval_s,
        })
        return session

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._started

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """
        Register inbound handlers, start watching location, start the
        heartbeat, then connect. Idempotent.

        Handlers are registered before connecting so the first join
        already sees them.
        """
        if self._started or self._closed:
            return
        self._started = True

        self.chat.attach()
        self.audio.attach()
        self.location.attach()
        self.location.start_watching()
        self.heartbeat.start()

        log_event({
            "ts_ms": now_ms(),
            "event_type": "SESSION_STARTED",
            "session_id": self.session_id,
        })

        await self.connection.connect()

    async def shutdown(self) -> None:
        """
        Tear down in dependency order. Idempotent.

        Heartbeat first (so it cannot reconnect mid-teardown), then
        inbound handlers, then capture and location, then the transport.
        """
        if self._closed:
            return
        self._closed = True

        await self.heartbeat.stop()
        self.chat.detach()
        await self.audio.shutdown()
        await self.location.teardown()
        await self.connection.shutdown()

        log_event({
            "ts_ms": now_ms(),
            "event_type": "SESSION_ENDED",
            "session_id": self.session_id,
            "entries": len(self.entry_log),
        })

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Plain-data view of the session for the control API."""
        audio_state = self.audio.state
        latest = self.location.latest
        return {
            "session_id": self.session_id,
            "room_token": self.room_token,
            "link_state": self.connection.link_state.value,
            "unreachable": self.connection.unreachable,
            "reconnect_attempt": self.connection.reconnect_attempt,
            "heartbeat_running": self.heartbeat.running,
            "audio": {
                "state": audio_state.state.value,
                "capture_id": audio_state.capture_id,
                "last_error": audio_state.last_error,
                "permission_denied": audio_state.permission_denied,
            },
            "location": {
                "policy": self.location.policy.value,
                "watching": self.location.watching,
                "last_error": self.location.last_error,
                "sent_count": self.location.sent_count,
                "latest": None if latest is None else {
                    "latitude": latest.latitude,
                    "longitude": latest.longitude,
                    "captured_at": latest.captured_at,
                },
            },
            "entries": len(self.entry_log),
            "closed": self._closed,
        }
