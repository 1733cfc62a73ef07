"""
Relay connection manager.

Responsibilities:
- Own the single long-lived relay transport session
- Be the ONLY writer of LinkState
- Announce room membership on every join
- Reconnect after drops/failures per session.retry policy
- Gate outbound sends on LinkState (drop + log, never raise)
- Fan inbound relay events out to subscribed handlers

Still NOT responsible for:
- What gets sent (components build payloads via protocol.relay_events)
- Queueing or redelivery of dropped sends
- Presence cadence (see session.heartbeat)
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from constants import RECONNECT_ATTEMPTS_UNBOUNDED, RECONNECT_DELAYS_MS
from errors import TransportError
from observability.logger import log_event
from protocol.relay_events import RelayEvent, encode_join
from relay.transport import RelayTransport
from session.link_state import LinkState, is_allowed_transition
from session.retry import (
    ReconnectAttempt,
    get_reconnect_delay_ms,
    next_attempt,
    reset_attempt,
    should_retry,
)
from session.room_token import RoomToken


EventHandler = Callable[[Any], "Awaitable[None] | None"]
LinkListener = Callable[[LinkState, LinkState], None]
JoinedListener = Callable[[], Awaitable[None]]
UnreachableListener = Callable[[], None]


@dataclass
class Subscription:
    """
    Handle returned by every registration on ConnectionManager.

    cancel() is idempotent and must be called on component teardown,
    otherwise a re-mounted component receives every event twice.
    """
    _remove: Callable[[], None]
    active: bool = field(default=True)

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._remove()


class ConnectionManager:
    """
    One manager == one room session.

    Guarantees:
    - LinkState moves only DISCONNECTED -> CONNECTING -> JOINED, and
      anything -> DISCONNECTED
    - connect() is idempotent while CONNECTING/JOINED
    - At most one reconnect timer is pending at any time
    - No method raises transport errors to its caller
    """

    def __init__(
        self,
        *,
        transport: RelayTransport,
        room_token: RoomToken,
        session_id: str,
        max_reconnect_attempts: int = RECONNECT_ATTEMPTS_UNBOUNDED,
        reconnect_delays_ms: tuple[int, ...] = RECONNECT_DELAYS_MS,
    ) -> None:
        self._transport = transport
        self._room_token = room_token
        self._session_id = session_id
        self._max_reconnect_attempts = max_reconnect_attempts
        self._reconnect_delays_ms = reconnect_delays_ms

        self._link_state = LinkState.DISCONNECTED
        self._unreachable = False
        self._closed = False
        self._attempt: ReconnectAttempt = reset_attempt()
        self._reconnect_task: asyncio.Task[None] | None = None

        self._handlers: dict[str, list[EventHandler]] = {}
        self._registered_events: set[str] = set()
        self._link_listeners: list[LinkListener] = []
        self._joined_listeners: list[JoinedListener] = []
        self._unreachable_listeners: list[UnreachableListener] = []

        self._transport.set_disconnect_handler(self._on_transport_disconnect)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def link_state(self) -> LinkState:
        return self._link_state

    @property
    def room_token(self) -> RoomToken:
        return self._room_token

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def unreachable(self) -> bool:
        """True once a bounded reconnect budget is exhausted. Terminal."""
        return self._unreachable

    @property
    def reconnect_attempt(self) -> int:
        return self._attempt.attempt

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def log_context(self) -> dict[str, Any]:
        """Standard logging context for this session."""
        return {
            "session_id": self._session_id,
            "link_state": self._link_state.value,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Open the relay session and join the room.

        No-op when CONNECTING/JOINED, after shutdown, or once unreachable.
        A failed attempt schedules a reconnect; nothing is raised.
        """
        if self._closed or self._unreachable:
            log_event({
                **self.log_context(),
                "event_type": "CONNECT_IGNORED",
                "reason": "closed" if self._closed else "unreachable",
            })
            return

        if self._link_state is not LinkState.DISCONNECTED:
            return

        self._set_link_state(LinkState.CONNECTING, reason="connect")

        try:
            await self._transport.connect()
        except TransportError as e:
            log_event({
                **self.log_context(),
                "event_type": "RELAY_CONNECT_FAILED",
                "error": str(e),
                "attempt": self._attempt.attempt,
            })
            # A disconnect may have raced us here already
            if self._link_state is LinkState.CONNECTING:
                self._set_link_state(LinkState.DISCONNECTED, reason="connect_failed")
            # An extra attempt (e.g. from the heartbeat) leaves a pending
            # backoff timer and the attempt budget untouched
            if not self._reconnect_pending_elsewhere():
                self._schedule_reconnect()
            return

        if self._closed:
            await self._safe_transport_disconnect()
            return

        if self._link_state is not LinkState.CONNECTING:
            # Dropped between connect() returning and us resuming
            return

        await self._on_joined()

    async def shutdown(self) -> None:
        """
        Tear the session down.

        Cancels any pending reconnect, drops every handler and listener,
        closes the transport. Idempotent.
        """
        if self._closed:
            return
        self._closed = True

        await self._cancel_reconnect()

        self._handlers.clear()
        self._joined_listeners.clear()
        self._unreachable_listeners.clear()

        await self._safe_transport_disconnect()

        if self._link_state is not LinkState.DISCONNECTED:
            self._set_link_state(LinkState.DISCONNECTED, reason="shutdown")

        self._link_listeners.clear()

        log_event({
            **self.log_context(),
            "event_type": "CONNECTION_SHUTDOWN",
        })

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def announce(self) -> bool:
        """(Re)send the membership announcement. Safe to repeat."""
        return await self.send(RelayEvent.JOIN_ROOM, encode_join(self._room_token))

    async def send(self, event: RelayEvent | str, payload: Any) -> bool:
        """
        Best-effort emit.

        Returns:
            True if handed to the transport
            False if dropped (not JOINED, or transport error)
        """
        name = event.value if isinstance(event, RelayEvent) else event

        if self._link_state is not LinkState.JOINED:
            log_event({
                **self.log_context(),
                "event_type": "SEND_DROPPED",
                "relay_event": name,
                "reason": "not_joined",
            })
            return False

        try:
            await self._transport.emit(name, payload)
        except TransportError as e:
            log_event({
                **self.log_context(),
                "event_type": "SEND_FAILED",
                "relay_event": name,
                "error": str(e),
            })
            return False

        return True

    # ------------------------------------------------------------------
    # Inbound / listeners
    # ------------------------------------------------------------------

    def subscribe(self, event: RelayEvent | str, handler: EventHandler) -> Subscription:
        """
        Register an inbound handler. Handlers persist across reconnects.

        Handlers may be sync or async; exceptions are logged and swallowed
        so one faulty handler never breaks the transport or its siblings.
        """
        name = event.value if isinstance(event, RelayEvent) else event
        self._handlers.setdefault(name, []).append(handler)

        if name not in self._registered_events:
            self._registered_events.add(name)

            async def _dispatch(data: Any, _name: str = name) -> None:
                await self._dispatch_inbound(_name, data)

            self._transport.on(name, _dispatch)

        return Subscription(lambda: self.unsubscribe(name, handler))

    def unsubscribe(self, event: RelayEvent | str, handler: EventHandler) -> None:
        """Remove a handler. Unknown handlers are ignored."""
        name = event.value if isinstance(event, RelayEvent) else event
        handlers = self._handlers.get(name)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def handler_count(self, event: RelayEvent | str) -> int:
        name = event.value if isinstance(event, RelayEvent) else event
        return len(self._handlers.get(name, ()))

    def on_link_change(self, listener: LinkListener) -> Subscription:
        """listener(prev, new) runs synchronously on every LinkState change."""
        self._link_listeners.append(listener)
        return Subscription(lambda: _discard(self._link_listeners, listener))

    def on_joined(self, listener: JoinedListener) -> Subscription:
        """Async listener awaited after every join announcement."""
        self._joined_listeners.append(listener)
        return Subscription(lambda: _discard(self._joined_listeners, listener))

    def on_unreachable(self, listener: UnreachableListener) -> Subscription:
        """Listener run once when a bounded reconnect budget is exhausted."""
        self._unreachable_listeners.append(listener)
        return Subscription(lambda: _discard(self._unreachable_listeners, listener))

    # ------------------------------------------------------------------
    # Internal: state transitions
    # ------------------------------------------------------------------

    def _set_link_state(self, new: LinkState, *, reason: str) -> None:
        prev = self._link_state
        if prev is new:
            return

        if not is_allowed_transition(prev, new):
            raise RuntimeError(f"illegal LinkState transition {prev.value} -> {new.value}")

        self._link_state = new

        log_event({
            "session_id": self._session_id,
            "event_type": "LINK_STATE_CHANGED",
            "from_state": prev.value,
            "to_state": new.value,
            "reason": reason,
        })

        for listener in list(self._link_listeners):
            try:
                listener(prev, new)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    **self.log_context(),
                    "event_type": "LINK_LISTENER_ERROR",
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })

    async def _on_joined(self) -> None:
        self._attempt = reset_attempt()
        await self._cancel_reconnect()

        self._set_link_state(LinkState.JOINED, reason="transport_connected")
        await self.announce()

        for listener in list(self._joined_listeners):
            if self._link_state is not LinkState.JOINED:
                break
            try:
                await listener()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    **self.log_context(),
                    "event_type": "JOINED_LISTENER_ERROR",
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })

    async def _on_transport_disconnect(self, reason: str | None) -> None:
        if self._closed or self._link_state is LinkState.DISCONNECTED:
            return

        self._set_link_state(LinkState.DISCONNECTED, reason=reason or "transport_disconnect")
        self._schedule_reconnect()

    async def _dispatch_inbound(self, name: str, data: Any) -> None:
        for handler in list(self._handlers.get(name, ())):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    **self.log_context(),
                    "event_type": "INBOUND_HANDLER_ERROR",
                    "relay_event": name,
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })

    # ------------------------------------------------------------------
    # Internal: reconnect timer
    # ------------------------------------------------------------------

    def _schedule_reconnect(self) -> None:
        """
        Start (or replace) the reconnect timer.

        The timer task re-enters connect(), which schedules the next
        attempt itself if it fails again.
        """
        if self._closed or self._unreachable:
            return

        if not should_retry(attempt=self._attempt, max_attempts=self._max_reconnect_attempts):
            self._unreachable = True
            log_event({
                **self.log_context(),
                "event_type": "RELAY_UNREACHABLE",
                "attempts": self._attempt.attempt,
            })
            for listener in list(self._unreachable_listeners):
                listener()
            return

        delay_ms = get_reconnect_delay_ms(
            attempt=self._attempt,
            delays_ms=self._reconnect_delays_ms,
        )
        self._attempt = next_attempt(self._attempt)

        log_event({
            **self.log_context(),
            "event_type": "RECONNECT_SCHEDULED",
            "attempt": self._attempt.attempt,
            "delay_ms": delay_ms,
        })

        current = asyncio.current_task()
        if self._reconnect_task is not None and self._reconnect_task is not current:
            self._reconnect_task.cancel()

        async def _reconnect_task() -> None:
            try:
                await asyncio.sleep(delay_ms / 1000.0)
            except asyncio.CancelledError:
                return
            await self.connect()

        self._reconnect_task = asyncio.create_task(_reconnect_task())

    def _reconnect_pending_elsewhere(self) -> bool:
        task = self._reconnect_task
        return (
            task is not None
            and not task.done()
            and task is not asyncio.current_task()
        )

    async def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is None or task is asyncio.current_task() or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _safe_transport_disconnect(self) -> None:
        try:
            await self._transport.disconnect()
        except TransportError as e:
            log_event({
                **self.log_context(),
                "event_type": "RELAY_DISCONNECT_FAILED",
                "error": str(e),
            })


def _discard(items: list[Any], item: Any) -> None:
    if item in items:
        items.remove(item)
