"""
Location reporter.

Responsibilities:
- Continuous mode: consume PositionSource.watch(), keep the latest fix,
  forward fixes while JOINED (policy permitting)
- One-shot mode: request_once(), optionally silent
- Re-send the latest fix on every join so the owner is never left with
  a stale position after a reconnect

Non-responsibilities:
- No queueing: fixes produced while not JOINED are dropped
- No user-facing prompts (the result carries `silent` for the caller)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from constants import LOCATION_MIN_INTERVAL_S_DEFAULT
from errors import DeviceError, PermissionDenied
from location.source import PositionSample, PositionSource
from observability.logger import log_event
from protocol.relay_events import RelayEvent, encode_location
from session.connection import ConnectionManager, Subscription
from session.link_state import LinkState


class LocationPolicy(str, Enum):
    """
    When continuous fixes are forwarded.

    EVERY_SAMPLE:
        Every fix is sent while JOINED (optionally throttled by
        min_interval_s).
    ON_JOIN_ONLY:
        Continuous fixes only refresh `latest`; a fix is sent on join and
        on explicit one-shot requests.
    """
    EVERY_SAMPLE = "every_sample"
    ON_JOIN_ONLY = "on_join_only"


@dataclass(frozen=True)
class LocationResult:
    """Outcome of a single location action, for the presentation layer."""
    sent: bool
    sample: PositionSample | None = None
    error: str | None = None
    permission_denied: bool = False
    silent: bool = False


class LocationReporter:
    """
    Streams position to the relay without flooding it.

    last_error is the recoverable-error flag for location: set by any
    failed action, cleared by the next successful fix.
    """

    def __init__(
        self,
        *,
        connection: ConnectionManager,
        source: PositionSource,
        policy: LocationPolicy = LocationPolicy.EVERY_SAMPLE,
        min_interval_s: float = LOCATION_MIN_INTERVAL_S_DEFAULT,
        request_on_join: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._connection = connection
        self._source = source
        self._policy = policy
        self._min_interval_s = min_interval_s
        self._request_on_join = request_on_join
        self._clock = clock

        self._latest: PositionSample | None = None
        self._last_sent_at: float | None = None
        self._watch_task: asyncio.Task[None] | None = None
        self._join_request_task: asyncio.Task[LocationResult] | None = None
        self._joined_sub: Subscription | None = None

        self.last_error: str | None = None
        self.sent_count = 0

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def latest(self) -> PositionSample | None:
        return self._latest

    @property
    def watching(self) -> bool:
        return self._watch_task is not None and not self._watch_task.done()

    @property
    def policy(self) -> LocationPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Hook into join events. Idempotent."""
        if self._joined_sub is None or not self._joined_sub.active:
            self._joined_sub = self._connection.on_joined(self._on_joined)

    def start_watching(self) -> None:
        """Subscribe to the continuous source. Idempotent."""
        if self.watching:
            return
        self._watch_task = asyncio.create_task(self._watch())

    async def stop_watching(self) -> None:
        task = self._watch_task
        self._watch_task = None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def teardown(self) -> None:
        """Stop the continuous subscription and detach from join events."""
        await self.stop_watching()
        await self._cancel_join_request()
        if self._joined_sub is not None:
            self._joined_sub.cancel()
            self._joined_sub = None

    # ------------------------------------------------------------------
    # One-shot
    # ------------------------------------------------------------------

    async def request_once(self, *, silent: bool = False) -> LocationResult:
        """
        Request one fix and send it if JOINED.

        Never raises device errors; they come back in the result and in
        last_error, and the next explicit request tries again.
        """
        try:
            sample = await self._source.current_position()
        except DeviceError as e:
            return self._record_failure(e, silent=silent, mode="one_shot")

        self._latest = sample
        self.last_error = None
        sent = await self._send(sample)
        return LocationResult(sent=sent, sample=sample, silent=silent)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _on_joined(self) -> None:
        if self._latest is not None:
            await self._send(self._latest)
        elif self._request_on_join:
            # Runs beside connect(); the device may wait a long time for a fix
            if self._join_request_task is None or self._join_request_task.done():
                self._join_request_task = asyncio.create_task(
                    self.request_once(silent=True)
                )

    async def _cancel_join_request(self) -> None:
        task = self._join_request_task
        self._join_request_task = None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _watch(self) -> None:
        try:
            async for sample in self._source.watch():
                await self._on_sample(sample)
        except DeviceError as e:
            self._record_failure(e, silent=True, mode="continuous")

    async def _on_sample(self, sample: PositionSample) -> None:
        self._latest = sample
        self.last_error = None

        if self._policy is not LocationPolicy.EVERY_SAMPLE:
            return

        if self._min_interval_s > 0 and self._last_sent_at is not None:
            if self._clock() - self._last_sent_at < self._min_interval_s:
                return

        await self._send(sample)

    async def _send(self, sample: PositionSample) -> bool:
        if self._connection.link_state is not LinkState.JOINED:
            log_event({
                **self._connection.log_context(),
                "event_type": "LOCATION_DROPPED",
                "reason": "not_joined",
            })
            return False

        sent = await self._connection.send(
            RelayEvent.LOCATION_UPDATE,
            encode_location(self._connection.room_token, sample),
        )
        if sent:
            self._last_sent_at = self._clock()
            self.sent_count += 1
        return sent

    def _record_failure(self, error: DeviceError, *, silent: bool, mode: str) -> LocationResult:
        denied = isinstance(error, PermissionDenied)
        self.last_error = str(error) or type(error).__name__
        log_event({
            **self._connection.log_context(),
            "event_type": "LOCATION_PERMISSION_DENIED" if denied else "LOCATION_UNAVAILABLE",
            "mode": mode,
            "error": self.last_error,
        })
        return LocationResult(
            sent=False,
            error=self.last_error,
            permission_denied=denied,
            silent=silent,
        )
