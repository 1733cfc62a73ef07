# backend/devices/push_position.py
"""
Position source fed from outside the engine.

The presentation layer owns the real geolocation API; it pushes fixes
and permission decisions into this source over the control API, and
the LocationReporter consumes it like any other PositionSource.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional, cast

from errors import PermissionDenied, SourceUnavailable
from location.source import PositionSample, PositionSource
from observability.logger import log_event


# Pushed into watcher queues when permission is revoked
_DENIED = object()


class PushPositionSource(PositionSource):
    """
    In-process position source.

    - push(sample) records the fix and wakes every watcher
    - set_permission(False) fails pending and future requests with
      PermissionDenied and ends active watches
    - current_position() returns the newest fix, waiting up to
      request_timeout_s for one if none has been pushed yet
    """

    def __init__(self, *, request_timeout_s: float = 10.0) -> None:
        if request_timeout_s < 0:
            raise ValueError("request_timeout_s must be >= 0")

        self._request_timeout_s = request_timeout_s
        self._latest: Optional[PositionSample] = None
        self._permission_denied = False
        self._watchers: list[asyncio.Queue[object]] = []
        self._waiters: list[asyncio.Future[PositionSample]] = []

    # -------------------------
    # Feeding side
    # -------------------------

    @property
    def permission_denied(self) -> bool:
        return self._permission_denied

    @property
    def latest(self) -> Optional[PositionSample]:
        return self._latest

    @property
    def watcher_count(self) -> int:
        return len(self._watchers)

    def set_permission(self, granted: bool) -> None:
        self._permission_denied = not granted
        log_event({
            "event_type": "POSITION_PERMISSION_SET",
            "granted": granted,
        })
        if granted:
            return

        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_exception(PermissionDenied("location permission denied"))
        self._waiters.clear()

        for q in self._watchers:
            q.put_nowait(_DENIED)

    def push(self, sample: PositionSample) -> None:
        """Record a new fix. Ignored while permission is denied."""
        if self._permission_denied:
            log_event({
                "event_type": "POSITION_SAMPLE_IGNORED",
                "reason": "permission_denied",
            })
            return

        self._latest = sample

        for waiter in self._waiters:
            if not waiter.done():
                waiter.set_result(sample)
        self._waiters.clear()

        for q in self._watchers:
            q.put_nowait(sample)

    # -------------------------
    # PositionSource
    # -------------------------

    async def current_position(self) -> PositionSample:
        if self._permission_denied:
            raise PermissionDenied("location permission denied")

        if self._latest is not None:
            return self._latest

        waiter: asyncio.Future[PositionSample] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await asyncio.wait_for(waiter, timeout=self._request_timeout_s)
        except asyncio.TimeoutError as e:
            raise SourceUnavailable("no position fix available") from e
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    async def watch(self) -> AsyncIterator[PositionSample]:
        if self._permission_denied:
            raise PermissionDenied("location permission denied")

        q: asyncio.Queue[object] = asyncio.Queue()
        self._watchers.append(q)
        try:
            while True:
                item = await q.get()
                if item is _DENIED:
                    raise PermissionDenied("location permission revoked")
                yield cast(PositionSample, item)
        finally:
            self._watchers.remove(q)
