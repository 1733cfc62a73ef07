# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import base64

import pytest

from audio.codec import decode_audio_payload
from errors import PermissionDenied
from exchange.enums import AudioState
from exchange.runtime import AudioExchangeStateMachine
from fakes import FakeAudioSource, FakeTransport, capture_logs, event_types, settle
from history.entries import AudioClip, Sender
from history.entry_log import EntryLog
from session.connection import ConnectionManager
from session.link_state import LinkState
from session.room_token import RoomToken


def make_rig(
    *,
    sent_display_ms: int = 1500,
) -> tuple[FakeTransport, ConnectionManager, FakeAudioSource, EntryLog, AudioExchangeStateMachine]:
    transport = FakeTransport()
    cm = ConnectionManager(
        transport=transport,
        room_token=RoomToken("abc123"),
        session_id="sess_test",
        reconnect_delays_ms=(10_000,),
    )
    source = FakeAudioSource()
    log = EntryLog(session_id="sess_test")
    machine = AudioExchangeStateMachine(
        connection=cm,
        source=source,
        entry_log=log,
        sent_display_ms=sent_display_ms,
        clock=lambda: 1_700_000_000.0,
    )
    return transport, cm, source, log, machine


# ---------------------------------------------------------------------
# Capture -> send
# ---------------------------------------------------------------------

def test_capture_while_joined_sends_one_clip() -> None:
    async def scenario() -> None:
        transport, cm, source, log, machine = make_rig(sent_display_ms=0)
        await cm.connect()

        await machine.begin_capture()
        assert machine.audio_state is AudioState.CAPTURING

        for chunk in (b"ab", b"cd", b"ef"):
            source.chunk(chunk)
        await machine.end_capture()

        sent = transport.sent("send-audio")
        assert len(sent) == 1
        assert sent[0]["qrId"] == "abc123"
        assert sent[0]["audioBase64"] == (
            "data:audio/webm;base64," + base64.b64encode(b"abcdef").decode()
        )

        clips = log.audio_clips()
        assert len(clips) == 1
        assert clips[0].sender is Sender.SELF
        assert clips[0].payload == b"abcdef"

        assert machine.audio_state is AudioState.IDLE
        assert not source.running
        await cm.shutdown()

    asyncio.run(scenario())


def test_capture_while_disconnected_is_kept_locally(monkeypatch: pytest.MonkeyPatch) -> None:
    events = capture_logs(monkeypatch)

    async def scenario() -> None:
        transport, _cm, source, log, machine = make_rig()

        await machine.begin_capture()
        source.chunk(b"hello")
        await machine.end_capture()

        assert transport.sent("send-audio") == []
        assert [c.payload for c in log.audio_clips()] == [b"hello"]
        # Not transmitted: no SENT display
        assert machine.audio_state is AudioState.IDLE

    asyncio.run(scenario())
    assert "AUDIO_SEND_DROPPED" in event_types(events)


def test_drop_mid_capture_does_not_interrupt_capture() -> None:
    async def scenario() -> None:
        transport, cm, source, log, machine = make_rig()
        await cm.connect()

        await machine.begin_capture()
        source.chunk(b"one")
        await transport.drop()

        assert cm.link_state is LinkState.DISCONNECTED
        assert machine.audio_state is AudioState.CAPTURING

        source.chunk(b"two")
        await machine.end_capture()

        assert transport.sent("send-audio") == []
        assert [c.payload for c in log.audio_clips()] == [b"onetwo"]
        await cm.shutdown()

    asyncio.run(scenario())


def test_tail_chunk_flushed_by_stop_is_included() -> None:
    async def scenario() -> None:
        _transport, _cm, source, log, machine = make_rig()
        source.tail = b"-tail"

        await machine.begin_capture()
        source.chunk(b"body")
        await machine.end_capture()

        assert log.audio_clips()[0].payload == b"body-tail"

    asyncio.run(scenario())


def test_sent_state_reverts_after_display_time() -> None:
    async def scenario() -> None:
        _transport, cm, source, _log, machine = make_rig(sent_display_ms=20)
        await cm.connect()

        await machine.begin_capture()
        source.chunk(b"x")
        await machine.end_capture()
        assert machine.audio_state is AudioState.SENT

        await settle(0.05)
        assert machine.audio_state is AudioState.IDLE
        await cm.shutdown()

    asyncio.run(scenario())


def test_begin_from_sent_starts_a_new_capture() -> None:
    async def scenario() -> None:
        _transport, cm, source, _log, machine = make_rig(sent_display_ms=10_000)
        await cm.connect()

        await machine.begin_capture()
        source.chunk(b"x")
        await machine.end_capture()
        assert machine.audio_state is AudioState.SENT

        await machine.begin_capture()
        assert machine.audio_state is AudioState.CAPTURING
        assert machine.state.capture_id == 2

        await machine.shutdown()
        await cm.shutdown()

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Single capture session
# ---------------------------------------------------------------------

def test_second_begin_keeps_one_capture_session() -> None:
    async def scenario() -> None:
        _transport, _cm, source, log, machine = make_rig()

        await machine.begin_capture()
        first = machine.capture
        source.chunk(b"a")

        await machine.begin_capture()

        assert machine.capture is first
        assert source.start_calls == 1
        source.chunk(b"b")

        await machine.end_capture()
        assert [c.payload for c in log.audio_clips()] == [b"ab"]

    asyncio.run(scenario())


def test_second_begin_while_acquiring_is_rejected() -> None:
    async def scenario() -> None:
        _transport, _cm, source, _log, machine = make_rig()
        source.gate = asyncio.Event()

        first = asyncio.create_task(machine.begin_capture())
        await settle()
        assert machine.audio_state is AudioState.ACQUIRING

        await machine.begin_capture()
        assert source.start_calls == 1

        source.gate.set()
        await first
        assert machine.audio_state is AudioState.CAPTURING
        await machine.shutdown()

    asyncio.run(scenario())


def test_release_before_grant_still_produces_a_clip() -> None:
    async def scenario() -> None:
        _transport, _cm, source, log, machine = make_rig()
        source.gate = asyncio.Event()
        source.tail = b"short"

        pressing = asyncio.create_task(machine.press())
        await settle()
        await machine.release()
        assert machine.state.end_requested

        source.gate.set()
        await pressing

        assert machine.audio_state is AudioState.IDLE
        assert [c.payload for c in log.audio_clips()] == [b"short"]

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Interaction shapes
# ---------------------------------------------------------------------

def test_toggle_starts_and_stops() -> None:
    async def scenario() -> None:
        _transport, _cm, source, log, machine = make_rig()

        await machine.toggle()
        assert machine.audio_state is AudioState.CAPTURING
        source.chunk(b"tap")
        await machine.toggle()

        assert machine.audio_state is AudioState.IDLE
        assert len(log.audio_clips()) == 1

    asyncio.run(scenario())


def test_toggle_while_acquiring_ends_once_granted() -> None:
    async def scenario() -> None:
        _transport, _cm, source, log, machine = make_rig()
        source.gate = asyncio.Event()
        source.tail = b"tap"

        starting = asyncio.create_task(machine.toggle())
        await settle()
        assert machine.audio_state is AudioState.ACQUIRING

        await machine.toggle()
        assert machine.state.end_requested
        assert source.start_calls == 1

        source.gate.set()
        await starting

        assert machine.audio_state is AudioState.IDLE
        assert [c.payload for c in log.audio_clips()] == [b"tap"]

    asyncio.run(scenario())


def test_pointer_leave_counts_as_release() -> None:
    async def scenario() -> None:
        _transport, _cm, source, log, machine = make_rig()

        await machine.press()
        source.chunk(b"held")
        await machine.pointer_leave()

        assert machine.audio_state is AudioState.IDLE
        assert len(log.audio_clips()) == 1

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Failures / teardown
# ---------------------------------------------------------------------

def test_permission_denied_returns_to_idle_without_session() -> None:
    async def scenario() -> None:
        _transport, _cm, source, log, machine = make_rig()
        source.start_error = PermissionDenied("microphone blocked")

        await machine.press()

        assert machine.audio_state is AudioState.IDLE
        assert machine.state.permission_denied
        assert machine.state.last_error == "microphone blocked"
        assert machine.capture is None

        await machine.release()
        assert len(log) == 0

        # Next explicit action retries
        source.start_error = None
        await machine.press()
        assert machine.audio_state is AudioState.CAPTURING
        assert machine.state.last_error is None
        await machine.shutdown()

    asyncio.run(scenario())


def test_shutdown_aborts_capture_without_sending() -> None:
    async def scenario() -> None:
        transport, cm, source, log, machine = make_rig()
        await cm.connect()

        await machine.press()
        source.chunk(b"unsent")
        await machine.shutdown()

        assert machine.audio_state is AudioState.IDLE
        assert not source.running
        assert machine.capture is None
        assert len(log) == 0
        assert transport.sent("send-audio") == []
        await cm.shutdown()

    asyncio.run(scenario())


def test_shutdown_while_acquiring_releases_late_grant() -> None:
    async def scenario() -> None:
        _transport, _cm, source, _log, machine = make_rig()
        source.gate = asyncio.Event()

        pressing = asyncio.create_task(machine.press())
        await settle()
        await machine.shutdown()

        source.gate.set()
        await pressing

        assert machine.audio_state is AudioState.IDLE
        assert not source.running
        assert machine.capture is None

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Inbound audio
# ---------------------------------------------------------------------

def test_remote_clip_is_appended_not_played() -> None:
    async def scenario() -> None:
        transport, cm, _source, log, machine = make_rig()
        machine.attach()
        await cm.connect()

        data_url = "data:audio/webm;base64," + base64.b64encode(b"owner").decode()
        await transport.deliver("receive-audio", data_url)
        await transport.deliver("receive-audio", {"audioBase64": data_url})

        clips = log.audio_clips()
        assert len(clips) == 2
        assert all(isinstance(c, AudioClip) and c.sender is Sender.REMOTE for c in clips)
        assert decode_audio_payload(clips[0].encoded_as) == b"owner"
        await cm.shutdown()

    asyncio.run(scenario())


def test_malformed_remote_clip_is_dropped(monkeypatch: pytest.MonkeyPatch) -> None:
    events = capture_logs(monkeypatch)

    async def scenario() -> int:
        transport, cm, _source, log, machine = make_rig()
        machine.attach()
        await cm.connect()

        await transport.deliver("receive-audio", {"nope": 1})
        await transport.deliver("receive-audio", "data:audio/webm;base64,@@@")
        await cm.shutdown()
        return len(log)

    assert asyncio.run(scenario()) == 0
    assert event_types(events).count("AUDIO_INBOUND_MALFORMED") == 2
