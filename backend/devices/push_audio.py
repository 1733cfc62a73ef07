# backend/devices/push_audio.py
"""
Microphone source fed from outside the engine.

The presentation layer records audio and posts encoded chunks over the
control API; this source forwards them to whichever capture is active.
"""

from __future__ import annotations

from typing import Optional

from audio.capture import AudioSource, ChunkSink
from constants import AUDIO_MIME_TYPE_DEFAULT
from errors import PermissionDenied, SourceUnavailable
from observability.logger import log_event


class PushAudioSource(AudioSource):
    """
    In-process audio source.

    Chunks fed while no capture is running are dropped and counted.
    """

    def __init__(self, *, mime_type: str = AUDIO_MIME_TYPE_DEFAULT) -> None:
        self.mime_type = mime_type
        self._sink: Optional[ChunkSink] = None
        self._permission_denied = False
        self._available = True
        self.dropped_chunks = 0

    @property
    def running(self) -> bool:
        return self._sink is not None

    @property
    def permission_denied(self) -> bool:
        return self._permission_denied

    def set_permission(self, granted: bool) -> None:
        self._permission_denied = not granted
        log_event({
            "event_type": "MICROPHONE_PERMISSION_SET",
            "granted": granted,
        })

    def set_available(self, available: bool) -> None:
        self._available = available

    def feed(self, chunk: bytes) -> bool:
        """
        Deliver one recorded chunk.

        Returns:
            True if a capture consumed it
            False if dropped (no capture running)
        """
        if self._sink is None:
            self.dropped_chunks += 1
            return False
        self._sink(chunk)
        return True

    # -------------------------
    # AudioSource
    # -------------------------

    async def start(self, on_chunk: ChunkSink) -> None:
        if self._permission_denied:
            raise PermissionDenied("microphone permission denied")
        if not self._available:
            raise SourceUnavailable("no microphone available")
        self._sink = on_chunk

    async def stop(self) -> None:
        # Chunks are forwarded as they arrive, so there is no tail to flush
        self._sink = None
