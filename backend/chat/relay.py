"""
Text chat over the relay.

Send-and-forget with optimistic local echo: the Self entry is in the log
before the relay sees anything, and stays there whether or not the
relay ever does. Ordering between Self and Remote entries is plain
local arrival order.
"""

from __future__ import annotations

import time
from typing import Any, Callable

from errors import MalformedPayload
from history.entries import ChatEntry, Sender
from history.entry_log import EntryLog
from observability.logger import log_event
from protocol.relay_events import RelayEvent, decode_chat, encode_chat
from session.connection import ConnectionManager, Subscription


class ChatRelay:
    """Sends chat text and appends inbound chat to the entry log."""

    def __init__(
        self,
        *,
        connection: ConnectionManager,
        entry_log: EntryLog,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._connection = connection
        self._log = entry_log
        self._clock = clock
        self._subscription: Subscription | None = None

    def attach(self) -> None:
        """Start receiving chat. Idempotent."""
        if self._subscription is None or not self._subscription.active:
            self._subscription = self._connection.subscribe(
                RelayEvent.CHAT_RECEIVE, self._on_receive
            )

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    async def send(self, text: str) -> ChatEntry | None:
        """
        Append a Self entry and forward it.

        Returns:
            The appended entry, or None if text is empty/whitespace-only.
        """
        if not text or not text.strip():
            log_event({
                **self._connection.log_context(),
                "event_type": "CHAT_REJECTED_EMPTY",
            })
            return None

        entry = ChatEntry(sender=Sender.SELF, body=text, created_at=self._clock())
        self._log.append(entry)

        # Dropped inside send() when not JOINED; no retry, no queue
        await self._connection.send(
            RelayEvent.CHAT_SEND,
            encode_chat(self._connection.room_token, text),
        )
        return entry

    def _on_receive(self, data: Any) -> None:
        try:
            text, sender = decode_chat(data)
        except MalformedPayload as e:
            log_event({
                **self._connection.log_context(),
                "event_type": "CHAT_INBOUND_MALFORMED",
                "error": str(e),
            })
            return

        self._log.append(ChatEntry(sender=Sender.REMOTE, body=text, created_at=self._clock()))
        log_event({
            **self._connection.log_context(),
            "event_type": "CHAT_RECEIVED",
            "remote_sender": sender,
            "char_count": len(text),
        })
