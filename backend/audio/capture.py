# backend/audio/capture.py
"""
Audio capture boundary and the single capture-session buffer.

- AudioSource: microphone contract (start with a chunk sink, stop)
- AudioCaptureSession: ordered, in-memory chunk buffer for one clip
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Deque

from observability.logger import log_event


ChunkSink = Callable[[bytes], None]


class AudioSource(ABC):
    """
    Abstract push-to-talk audio source.

    Note: on_chunk is called on the event loop, in production order.

    Implementations are responsible for:
    - Acquiring the device in start() (raise errors.PermissionDenied
      or errors.SourceUnavailable on failure, without calling on_chunk)
    - Delivering raw chunks to on_chunk until stop()
    - Flushing any buffered tail chunk to on_chunk BEFORE stop() returns
    - Releasing the device in stop(); stop() must be idempotent
    """

    mime_type: str = "audio/webm"

    @abstractmethod
    async def start(self, on_chunk: ChunkSink) -> None:
        raise NotImplementedError

    @abstractmethod
    async def stop(self) -> None:
        raise NotImplementedError


class AudioCaptureSession:
    """
    Mutable chunk buffer for exactly one capture.

    Exists from beginCapture until finalize. Empty chunks are skipped;
    chunks arriving after close() are dropped and counted.
    """

    def __init__(self, *, capture_id: int) -> None:
        self.capture_id = capture_id
        self._chunks: Deque[bytes] = deque()
        self._closed = False
        self.late_chunks = 0

    def append(self, chunk: bytes) -> bool:
        """
        Append a raw chunk in arrival order.

        Returns:
            True if buffered
            False if dropped (empty or session closed)
        """
        if self._closed:
            self.late_chunks += 1
            log_event({
                "event_type": "AUDIO_CHUNK_AFTER_CLOSE",
                "capture_id": self.capture_id,
                "chunk_len": len(chunk),
            })
            return False
        if not chunk:
            return False
        self._chunks.append(chunk)
        return True

    def close(self) -> bytes:
        """Close the session and assemble the buffered chunks into one payload."""
        self._closed = True
        payload = b"".join(self._chunks)
        self._chunks.clear()
        return payload

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._chunks)

    def byte_count(self) -> int:
        return sum(len(c) for c in self._chunks)
