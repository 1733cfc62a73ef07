# pylint: disable=missing-module-docstring,missing-function-docstring

import base64
import time
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from config import AppConfig
from fakes import FakeTransport, make_config
from server.app import create_app
from session.helper_session import HelperSession


class Rig:
    def __init__(self, client: TestClient, transport: FakeTransport) -> None:
        self.client = client
        self.transport = transport


def _factory(transport: FakeTransport):
    def build(config: AppConfig) -> HelperSession:
        return HelperSession.build(
            config=config,
            launch_context=config.launch_url,
            transport=transport,
        )
    return build


@pytest.fixture
def rig() -> Iterator[Rig]:
    transport = FakeTransport()
    app = create_app(config=make_config(), session_factory=_factory(transport))
    with TestClient(app) as client:
        yield Rig(client, transport)


# ---------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------

def test_health(rig: Rig) -> None:
    assert rig.client.get("/health").json() == {"status": "ok"}


def test_session_snapshot_reflects_engine(rig: Rig) -> None:
    body = rig.client.get("/session").json()

    assert body["room_token"] == "abc123"
    assert body["link_state"] == "JOINED"
    assert body["audio"]["state"] == "IDLE"
    assert rig.transport.sent("join-room") == ["abc123"]


def test_startup_does_not_wait_for_a_first_fix() -> None:
    transport = FakeTransport()
    app = create_app(
        config=make_config(location_on_join=True),
        session_factory=_factory(transport),
    )

    started = time.monotonic()
    with TestClient(app) as client:
        assert time.monotonic() - started < 2.0
        body = client.get("/session").json()
        assert body["link_state"] == "JOINED"
        assert body["location"]["latest"] is None

    # Shutdown cancels the pending join request
    assert time.monotonic() - started < 4.0


def test_missing_token_reports_invalid_session() -> None:
    transport = FakeTransport()
    app = create_app(
        config=make_config(launch_url="https://helper.example/"),
        session_factory=_factory(transport),
    )

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200

        resp = client.get("/session")
        assert resp.status_code == 503
        assert resp.json()["detail"]["error"] == "invalid_session"

        assert client.post("/chat", json={"text": "help"}).status_code == 503

    assert transport.connect_calls == 0


# ---------------------------------------------------------------------
# Chat / alert
# ---------------------------------------------------------------------

def test_chat_round_trip_through_log(rig: Rig) -> None:
    resp = rig.client.post("/chat", json={"text": "help"})
    assert resp.json()["accepted"] is True

    log = rig.client.get("/log").json()
    assert log["next"] == 1
    assert log["entries"][0]["kind"] == "chat"
    assert log["entries"][0]["sender"] == "self"
    assert log["entries"][0]["body"] == "help"

    assert rig.transport.sent("send-chat") == [
        {"qrId": "abc123", "text": "help", "sender": "Helper"}
    ]

    assert rig.client.get("/log", params={"since": 1}).json()["entries"] == []


def test_blank_chat_is_not_accepted(rig: Rig) -> None:
    assert rig.client.post("/chat", json={"text": "  "}).json()["accepted"] is False
    assert rig.client.get("/log").json()["entries"] == []


def test_alert_requires_confirmation(rig: Rig) -> None:
    assert rig.client.post("/alert", json={"confirmed": False}).json() == {"outcome": "cancelled"}
    assert rig.transport.sent("incoming-alarm") == []

    assert rig.client.post("/alert", json={"confirmed": True}).json() == {"outcome": "sent"}
    assert rig.transport.sent("incoming-alarm") == [{"qrId": "abc123"}]


# ---------------------------------------------------------------------
# Location
# ---------------------------------------------------------------------

def test_pushed_fix_is_sent_on_request(rig: Rig) -> None:
    resp = rig.client.post(
        "/location/sample",
        json={"latitude": 48.85, "longitude": 2.35, "captured_at": 10.0},
    )
    assert resp.json() == {"accepted": True}

    result = rig.client.post("/location/request", json={"silent": False}).json()

    assert result["sent"] is True
    payloads = rig.transport.sent("critical-alert")
    assert payloads[-1]["location"] == {"latitude": 48.85, "longitude": 2.35}


def test_denied_location_is_reported(rig: Rig) -> None:
    rig.client.post("/location/permission", json={"granted": False})

    result = rig.client.post("/location/request").json()

    assert result["sent"] is False
    assert result["permission_denied"] is True
    assert rig.client.get("/session").json()["location"]["last_error"]


# ---------------------------------------------------------------------
# Push-to-talk
# ---------------------------------------------------------------------

def test_press_chunk_release_sends_clip(rig: Rig) -> None:
    assert rig.client.post("/audio/press").json()["state"] == "CAPTURING"
    assert rig.client.post("/audio/chunk", content=b"abc").json() == {"accepted": True}
    assert rig.client.post("/audio/release").json()["state"] == "IDLE"

    entries = rig.client.get("/log").json()["entries"]
    assert entries[-1]["kind"] == "audio"
    assert entries[-1]["payload_len"] == 3

    sent = rig.transport.sent("send-audio")
    assert sent == [{
        "qrId": "abc123",
        "audioBase64": "data:audio/webm;base64," + base64.b64encode(b"abc").decode(),
    }]


def test_toggle_shape(rig: Rig) -> None:
    assert rig.client.post("/audio/toggle").json()["state"] == "CAPTURING"
    assert rig.client.post("/audio/toggle").json()["state"] == "IDLE"


def test_chunk_without_capture_is_dropped(rig: Rig) -> None:
    assert rig.client.post("/audio/chunk", content=b"stray").json() == {"accepted": False}


def test_denied_microphone_is_reported(rig: Rig) -> None:
    rig.client.post("/microphone/permission", json={"granted": False})

    body = rig.client.post("/audio/press").json()

    assert body["state"] == "IDLE"
    assert body["permission_denied"] is True
    assert body["last_error"]
