"""
Session entry log.

Responsibilities:
- Store chat entries and audio clips in local arrival order
- Hand out immutable snapshots / tails for presentation

Non-responsibilities:
- No relay sends (components append, then send)
- No reconciliation with the remote side
- No persistence

Invariants:
- Append-only: entries are never removed, replaced or reordered
- Order == order of append() calls on the event loop
"""

from __future__ import annotations

from observability.logger import log_event
from history.entries import AudioClip, ChatEntry, Entry


class EntryLog:
    """
    Mutable, append-only log shared by ChatRelay and the audio exchange.

    Local entries are appended optimistically, before (or without)
    any confirmation from the relay.
    """

    def __init__(self, session_id: str | None = None) -> None:
        self._session_id = session_id
        self._entries: list[Entry] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def append(self, entry: Entry) -> int:
        """Append an entry and return its index."""
        self._entries.append(entry)
        index = len(self._entries) - 1

        details: dict[str, object] = {}
        if isinstance(entry, AudioClip):
            details["payload_len"] = len(entry.payload)
        elif isinstance(entry, ChatEntry):
            details["char_count"] = len(entry.body)

        log_event({
            "event_type": "entry_appended",
            "session_id": self._session_id,
            "index": index,
            "kind": entry.kind,
            "sender": entry.sender.value,
            **details,
        })
        return index

    def entries(self) -> tuple[Entry, ...]:
        """Immutable snapshot of the whole log."""
        return tuple(self._entries)

    def entries_since(self, index: int) -> tuple[Entry, ...]:
        """Entries with position >= index (for incremental polling)."""
        if index < 0:
            index = 0
        return tuple(self._entries[index:])

    def chat_entries(self) -> tuple[ChatEntry, ...]:
        return tuple(e for e in self._entries if isinstance(e, ChatEntry))

    def audio_clips(self) -> tuple[AudioClip, ...]:
        return tuple(e for e in self._entries if isinstance(e, AudioClip))

    def __len__(self) -> int:
        return len(self._entries)
