"""
Presence heartbeat.

Re-asserts room membership on a fixed cadence so a relay that silently
forgot us (session expiry, dropped socket it never reported) gets the
announcement again, and forces a reconnect attempt whenever we are not
joined at tick time.

The cadence is anchored to the loop clock at start() and is never reset
by joins, so a drop right after a join is picked up by the next tick.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from constants import HEARTBEAT_INTERVAL_S
from observability.logger import log_event
from session.connection import ConnectionManager
from session.link_state import LinkState


class HeartbeatAction(str, Enum):
    """What a single tick did."""
    ANNOUNCED = "announced"
    RECONNECT = "reconnect"


class PresenceHeartbeat:
    """
    Periodic membership re-announcement bound to engine start/shutdown.

    start() is idempotent; stop() cancels and awaits the timer task,
    leaving nothing running.
    """

    def __init__(
        self,
        *,
        connection: ConnectionManager,
        interval_s: float = HEARTBEAT_INTERVAL_S,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")

        self._connection = connection
        self._interval_s = interval_s
        self._task: asyncio.Task[None] | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval_s(self) -> float:
        return self._interval_s

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def tick(self) -> HeartbeatAction:
        """
        One heartbeat: announce if JOINED, otherwise force a reconnect.
        """
        self.ticks += 1

        if self._connection.link_state is LinkState.JOINED:
            await self._connection.announce()
            return HeartbeatAction.ANNOUNCED

        log_event({
            **self._connection.log_context(),
            "event_type": "HEARTBEAT_RECONNECT",
            "tick": self.ticks,
        })
        await self._connection.connect()
        return HeartbeatAction.RECONNECT

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self._interval_s

        while True:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            next_at += self._interval_s

            try:
                await self.tick()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    **self._connection.log_context(),
                    "event_type": "HEARTBEAT_TICK_ERROR",
                    "exception": type(exc).__name__,
                    "message": str(exc),
                })

            # A slow tick must not cause a burst of catch-up ticks
            if next_at < loop.time():
                next_at = loop.time() + self._interval_s
