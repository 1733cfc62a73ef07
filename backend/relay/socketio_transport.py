"""
socket.io relay transport (python-socketio AsyncClient).

socket.io's own reconnection is switched off: ConnectionManager owns the
retry policy and LinkState, so a drop must surface exactly once here.
"""

from __future__ import annotations

from typing import Any

import socketio
from socketio import exceptions as sio_exceptions

from constants import RELAY_CONNECT_TIMEOUT_S, RELAY_TRANSPORTS_DEFAULT
from errors import TransportError
from observability.logger import log_event
from relay.transport import DisconnectHandler, InboundHandler, RelayTransport


class SocketIOTransport(RelayTransport):
    """
    One AsyncClient == one relay session.

    The client object is created once and reused across reconnects so
    that inbound handlers stay registered.
    """

    def __init__(
        self,
        *,
        url: str,
        transports: tuple[str, ...] = RELAY_TRANSPORTS_DEFAULT,
        connect_timeout_s: float = RELAY_CONNECT_TIMEOUT_S,
        client: Any | None = None,  # Type: socketio.AsyncClient
    ) -> None:
        self._url = url
        self._transports = list(transports)
        self._connect_timeout_s = connect_timeout_s
        self._sio = client if client is not None else socketio.AsyncClient(
            reconnection=False,
            logger=False,
            engineio_logger=False,
        )
        self._disconnect_handler: DisconnectHandler | None = None
        self._closing = False

        self._sio.on("disconnect", handler=self._on_disconnect)

    # ------------------------------------------------------------------
    # RelayTransport
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return bool(self._sio.connected)

    async def connect(self) -> None:
        self._closing = False
        try:
            await self._sio.connect(
                self._url,
                transports=self._transports,
                wait_timeout=self._connect_timeout_s,
            )
        except sio_exceptions.ConnectionError as e:
            raise TransportError(f"relay connect failed: {e}") from e

        log_event({
            "event_type": "RELAY_TRANSPORT_CONNECTED",
            "url": self._url,
            "sid": getattr(self._sio, "sid", None),
        })

    async def disconnect(self) -> None:
        self._closing = True
        if not self._sio.connected:
            return
        await self._sio.disconnect()

    async def emit(self, event: str, payload: Any) -> None:
        try:
            await self._sio.emit(event, payload)
        except sio_exceptions.SocketIOError as e:
            raise TransportError(f"emit {event} failed: {e}") from e

    def on(self, event: str, handler: InboundHandler) -> None:
        self._sio.on(event, handler=handler)

    def set_disconnect_handler(self, handler: DisconnectHandler) -> None:
        self._disconnect_handler = handler

    # ------------------------------------------------------------------
    # socket.io callbacks
    # ------------------------------------------------------------------

    async def _on_disconnect(self, reason: Any = None) -> None:
        """Newer python-socketio passes a reason; older releases pass nothing."""
        log_event({
            "event_type": "RELAY_TRANSPORT_DISCONNECTED",
            "url": self._url,
            "reason": str(reason) if reason is not None else None,
            "requested": self._closing,
        })
        if self._closing or self._disconnect_handler is None:
            return
        await self._disconnect_handler(str(reason) if reason is not None else None)
