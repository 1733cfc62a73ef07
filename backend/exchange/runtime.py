"""
Runtime execution shell for the push-to-talk exchange.

Responsibilities:
- Own the exchange state
- Call the pure reducer
- Execute commands with side effects (mic, codec, relay, entry log)
- Schedule and cancel the SENT display timer
- Convert device results and timer expiry into events
- Append inbound clips from the relay (never auto-played)
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

from audio.capture import AudioCaptureSession, AudioSource
from audio.codec import decode_audio_payload, encode_audio_payload
from errors import AudioCodecError, DeviceError, MalformedPayload, PermissionDenied
from exchange.commands import (
    AcquireSource,
    CancelTimer,
    Command,
    DiscardCapture,
    FinalizeClip,
    LogEvent,
    ReleaseSource,
    StartTimer,
)
from exchange.enums import CAPTURE_OPEN, AudioState
from exchange.events import (
    AbortCapture,
    BeginCapture,
    ClipFinalized,
    EndCapture,
    ExchangeEvent,
    ExchangeEventType,
    SentTimeout,
    SourceAcquired,
    SourceFailed,
)
from exchange.reducer import reduce
from exchange.state_dataclass import ExchangeState
from history.entries import AudioClip, Sender
from history.entry_log import EntryLog
from observability.logger import log_event, now_ms
from observability.metrics import record_value, timed
from protocol.relay_events import RelayEvent, decode_audio, encode_audio
from session.connection import ConnectionManager, Subscription
from session.link_state import LinkState


class AudioExchangeStateMachine:
    """
    Runtime execution boundary for push-to-talk.

    Guarantees:
    - Reducer is called exactly once per incoming event
    - State is swapped in before any command executes
    - Commands run in reducer-emitted order
    - Device results and timers re-enter through handle_event()

    Device acquisition is awaited inline by the calling action, so a
    release arriving while the mic is being granted sees ACQUIRING.
    """

    def __init__(
        self,
        *,
        connection: ConnectionManager,
        source: AudioSource,
        entry_log: EntryLog,
        sent_display_ms: int | None = None,
        mime_type: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._connection = connection
        self._source = source
        self._entry_log = entry_log
        self._mime_type = mime_type or source.mime_type
        self._clock = clock

        initial = ExchangeState()
        if sent_display_ms is not None:
            initial = ExchangeState(sent_display_ms=sent_display_ms)
        self._state = initial

        self._capture: AudioCaptureSession | None = None
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._subscription: Subscription | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> ExchangeState:
        return self._state

    @property
    def audio_state(self) -> AudioState:
        return self._state.state

    @property
    def capture(self) -> AudioCaptureSession | None:
        """The open capture buffer, if any."""
        return self._capture

    # ------------------------------------------------------------------
    # Interaction shapes
    # ------------------------------------------------------------------

    async def begin_capture(self) -> None:
        await self.handle_event(
            BeginCapture(event_type=ExchangeEventType.BEGIN_CAPTURE, ts_ms=now_ms())
        )

    async def end_capture(self) -> None:
        await self.handle_event(
            EndCapture(event_type=ExchangeEventType.END_CAPTURE, ts_ms=now_ms())
        )

    async def press(self) -> None:
        await self.begin_capture()

    async def release(self) -> None:
        await self.end_capture()

    async def pointer_leave(self) -> None:
        # Leaving the control while held counts as a release
        await self.end_capture()

    async def toggle(self) -> None:
        """Tap-to-start / tap-to-stop."""
        if self._state.state in CAPTURE_OPEN:
            await self.end_capture()
        else:
            await self.begin_capture()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Start receiving remote clips. Idempotent."""
        if self._subscription is None or not self._subscription.active:
            self._subscription = self._connection.subscribe(
                RelayEvent.AUDIO_RECEIVE, self._on_receive
            )

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    async def shutdown(self) -> None:
        """
        Abort any open capture and cancel timers.

        The buffer of an aborted capture is discarded, never sent.
        """
        self.detach()
        await self.handle_event(
            AbortCapture(event_type=ExchangeEventType.ABORT_CAPTURE, ts_ms=now_ms())
        )

        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)

    # ------------------------------------------------------------------
    # Event entry point
    # ------------------------------------------------------------------

    async def handle_event(self, event: ExchangeEvent) -> None:
        """
        The only entry point for events affecting exchange state.

        All event sources converge here: user intent, device results,
        finalize results and timers.
        """
        new_state, commands = reduce(self._state, event)
        self._state = new_state

        for cmd in commands:
            await self._execute_command(cmd)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                **self._connection.log_context(),
            })

        elif isinstance(cmd, AcquireSource):
            await self._acquire(cmd.capture_id)

        elif isinstance(cmd, ReleaseSource):
            # A newer capture owns the device; leave it alone
            if self._capture is not None and self._capture.capture_id != cmd.capture_id:
                return
            await self._stop_source(cmd.capture_id)

        elif isinstance(cmd, FinalizeClip):
            await self._finalize(cmd.capture_id)

        elif isinstance(cmd, DiscardCapture):
            session = self._capture
            self._capture = None
            await self._stop_source(cmd.capture_id)
            if session is not None:
                dropped = session.byte_count()
                session.close()
                log_event({
                    **self._connection.log_context(),
                    "event_type": "AUDIO_CAPTURE_DISCARDED",
                    "capture_id": cmd.capture_id,
                    "dropped_bytes": dropped,
                })

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
                capture_id=cmd.capture_id,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        else:
            log_event({
                **self._connection.log_context(),
                "event_type": "COMMAND_NOT_IMPLEMENTED",
                "command_type": type(cmd).__name__,
            })

    async def _acquire(self, capture_id: int) -> None:
        session = AudioCaptureSession(capture_id=capture_id)

        try:
            await self._source.start(session.append)
        except DeviceError as e:
            # Session never registered: nothing to discard
            session.close()
            await self.handle_event(
                SourceFailed(
                    event_type=ExchangeEventType.SOURCE_FAILED,
                    ts_ms=now_ms(),
                    capture_id=capture_id,
                    reason=str(e) or type(e).__name__,
                    permission_denied=isinstance(e, PermissionDenied),
                )
            )
            return

        # Only register if the capture is still the one being acquired
        if (
            self._state.state is AudioState.ACQUIRING
            and self._state.capture_id == capture_id
        ):
            self._capture = session
        else:
            session.close()

        await self.handle_event(
            SourceAcquired(
                event_type=ExchangeEventType.SOURCE_ACQUIRED,
                ts_ms=now_ms(),
                capture_id=capture_id,
            )
        )

    async def _finalize(self, capture_id: int) -> None:
        session = self._capture
        transmitted = False
        payload_len = 0

        with timed(
            "audio_finalize",
            session_id=self._connection.session_id,
            details={"capture_id": capture_id},
        ) as extra:
            # stop() flushes the tail chunk into the session before returning
            await self._stop_source(capture_id)

            if session is None or session.capture_id != capture_id:
                extra["missing_session"] = True
            else:
                self._capture = None
                payload = session.close()
                payload_len = len(payload)

                encoded = encode_audio_payload(payload, mime_type=self._mime_type)
                self._entry_log.append(
                    AudioClip(
                        sender=Sender.SELF,
                        payload=payload,
                        encoded_as=encoded,
                        created_at=self._clock(),
                    )
                )

                if self._connection.link_state is LinkState.JOINED:
                    transmitted = await self._connection.send(
                        RelayEvent.AUDIO_SEND,
                        encode_audio(self._connection.room_token, encoded),
                    )
                else:
                    log_event({
                        **self._connection.log_context(),
                        "event_type": "AUDIO_SEND_DROPPED",
                        "capture_id": capture_id,
                        "reason": "not_joined",
                    })

                record_value(
                    "audio_clip_bytes",
                    payload_len,
                    session_id=self._connection.session_id,
                    details={"capture_id": capture_id, "encoded_len": len(encoded)},
                )

            extra["transmitted"] = transmitted
            extra["payload_len"] = payload_len

        await self.handle_event(
            ClipFinalized(
                event_type=ExchangeEventType.CLIP_FINALIZED,
                ts_ms=now_ms(),
                capture_id=capture_id,
                transmitted=transmitted,
                payload_len=payload_len,
            )
        )

    async def _stop_source(self, capture_id: int) -> None:
        try:
            await self._source.stop()
        except DeviceError as e:
            log_event({
                **self._connection.log_context(),
                "event_type": "AUDIO_SOURCE_STOP_FAILED",
                "capture_id": capture_id,
                "error": str(e),
            })

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def _on_receive(self, data: Any) -> None:
        try:
            encoded = decode_audio(data)
            payload = decode_audio_payload(encoded)
        except (MalformedPayload, AudioCodecError) as e:
            log_event({
                **self._connection.log_context(),
                "event_type": "AUDIO_INBOUND_MALFORMED",
                "error": str(e),
            })
            return

        self._entry_log.append(
            AudioClip(
                sender=Sender.REMOTE,
                payload=payload,
                encoded_as=encoded,
                created_at=self._clock(),
            )
        )
        log_event({
            **self._connection.log_context(),
            "event_type": "AUDIO_RECEIVED",
            "payload_len": len(payload),
        })

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: ExchangeEventType,
        capture_id: int,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire.
        """
        self._cancel_timer(timer_id)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
            except asyncio.CancelledError:
                return

            self._timers.pop(timer_id, None)
            await self.handle_event(
                self._construct_timeout_event(
                    timeout_event_type=timeout_event_type,
                    capture_id=capture_id,
                )
            )

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """Idempotent: safe to call even if the timer doesn't exist."""
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _construct_timeout_event(
        self,
        *,
        timeout_event_type: ExchangeEventType,
        capture_id: int,
    ) -> ExchangeEvent:
        if timeout_event_type is ExchangeEventType.SENT_TIMEOUT:
            return SentTimeout(
                event_type=ExchangeEventType.SENT_TIMEOUT,
                ts_ms=now_ms(),
                capture_id=capture_id,
            )

        raise ValueError(f"Unknown timeout event type: {timeout_event_type}")
