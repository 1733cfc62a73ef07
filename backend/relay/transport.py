"""
Relay transport contract.

This module defines the *interface only*: no link state, no reconnect
policy, no room semantics live here. ConnectionManager owns all of that.

Key invariants:
- connect() either returns with the transport up, or raises TransportError.
- The transport never reconnects by itself; a drop is reported once via
  the disconnect handler and ConnectionManager decides what happens next.
- Inbound handlers registered with on() survive reconnects.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable


InboundHandler = Callable[[Any], Awaitable[None]]
DisconnectHandler = Callable[[str | None], Awaitable[None]]


class RelayTransport(ABC):
    """
    Abstract interface for an event-based relay transport.

    Implementations are responsible for:
    - Establishing / tearing down one long-lived session to the relay
    - Emitting named events with JSON-compatible payloads
    - Invoking registered inbound handlers with the raw payload
    - Reporting unexpected drops via the disconnect handler

    Non-responsibilities:
    - No LinkState tracking
    - No retries or backoff
    - No gating of sends
    """

    @property
    @abstractmethod
    def connected(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the relay session.

        Raises:
            TransportError if the relay cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Close the relay session. Idempotent.

        Does NOT invoke the disconnect handler.
        """
        raise NotImplementedError

    @abstractmethod
    async def emit(self, event: str, payload: Any) -> None:
        """
        Emit one event. Fire-and-forget: no ack is awaited.

        Raises:
            TransportError if the session is not usable.
        """
        raise NotImplementedError

    @abstractmethod
    def on(self, event: str, handler: InboundHandler) -> None:
        """Register the (single) inbound dispatcher for an event name."""
        raise NotImplementedError

    @abstractmethod
    def set_disconnect_handler(self, handler: DisconnectHandler) -> None:
        """Register the callback invoked when the relay drops the session."""
        raise NotImplementedError
