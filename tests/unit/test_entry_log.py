# pylint: disable=missing-module-docstring,missing-function-docstring

import dataclasses

import pytest

from history.entries import AudioClip, ChatEntry, Sender
from history.entry_log import EntryLog


def chat(body: str, sender: Sender = Sender.SELF) -> ChatEntry:
    return ChatEntry(sender=sender, body=body, created_at=1.0)


def clip(payload: bytes, sender: Sender = Sender.REMOTE) -> AudioClip:
    return AudioClip(sender=sender, payload=payload, encoded_as="x", created_at=2.0)


def test_append_returns_index_and_preserves_order() -> None:
    log = EntryLog(session_id="sess_test")

    assert log.append(chat("a")) == 0
    assert log.append(clip(b"b")) == 1
    assert log.append(chat("c", Sender.REMOTE)) == 2

    assert [e.kind for e in log.entries()] == ["chat", "audio", "chat"]
    assert [e.body for e in log.chat_entries()] == ["a", "c"]
    assert [c.payload for c in log.audio_clips()] == [b"b"]


def test_entries_since_returns_tail() -> None:
    log = EntryLog()
    for body in ("a", "b", "c"):
        log.append(chat(body))

    assert [e.body for e in log.entries_since(1)] == ["b", "c"]  # type: ignore[union-attr]
    assert log.entries_since(3) == ()
    assert len(log.entries_since(-5)) == 3


def test_snapshots_do_not_expose_internal_list() -> None:
    log = EntryLog()
    log.append(chat("a"))

    snapshot = log.entries()
    log.append(chat("b"))

    assert len(snapshot) == 1
    assert len(log) == 2


def test_entries_are_immutable() -> None:
    entry = chat("a")
    with pytest.raises(dataclasses.FrozenInstanceError):
        entry.body = "b"  # type: ignore[misc]
