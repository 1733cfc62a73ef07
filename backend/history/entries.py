"""
Entry log primitives.

Pure data containers only.
No behavior, no ordering logic, no relay knowledge.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Sender(str, Enum):
    """Who originated an entry, from this device's point of view."""
    SELF = "self"
    REMOTE = "remote"


@dataclass(frozen=True)
class ChatEntry:
    """
    One text message.

    created_at:
        Epoch seconds of local arrival (Remote) or local send (Self).
    """
    sender: Sender
    body: str
    created_at: float
    kind: str = field(default="chat", init=False)


@dataclass(frozen=True)
class AudioClip:
    """
    One push-to-talk clip.

    payload:
        Raw clip bytes (container format given by the data URL mime type).
    encoded_as:
        The same clip as transport-safe text (base64 data URL).

    Kept in memory only; never written to disk.
    """
    sender: Sender
    payload: bytes = field(repr=False)
    encoded_as: str = field(repr=False)
    created_at: float
    kind: str = field(default="audio", init=False)


Entry = ChatEntry | AudioClip
