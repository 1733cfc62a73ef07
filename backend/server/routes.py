"""
Route registration for the helper control API.

Responsibilities:
- Let the presentation layer drive the session (chat, alert, push-to-talk)
- Accept device data pushed from the presentation layer
- Expose session state and the entry log for polling
- Pull the session from app.state
"""

from __future__ import annotations

import time
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from devices.push_audio import PushAudioSource
from devices.push_position import PushPositionSource
from history.entries import AudioClip, ChatEntry, Entry
from location.source import PositionSample
from observability.logger import log_event
from session.helper_session import HelperSession


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------

class ChatBody(BaseModel):
    text: str


class AlertBody(BaseModel):
    confirmed: bool = False


class LocationRequestBody(BaseModel):
    silent: bool = False


class LocationSampleBody(BaseModel):
    latitude: float
    longitude: float
    captured_at: Optional[float] = None


class PermissionBody(BaseModel):
    granted: bool


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _session(request: Request) -> HelperSession:
    session: HelperSession | None = request.app.state.session
    if session is None:
        raise HTTPException(
            status_code=503,
            detail={
                "error": "invalid_session",
                "message": request.app.state.session_error or "session not started",
            },
        )
    return session


def _entry_to_json(index: int, entry: Entry) -> dict[str, Any]:
    out: dict[str, Any] = {
        "index": index,
        "kind": entry.kind,
        "sender": entry.sender.value,
        "created_at": entry.created_at,
    }
    if isinstance(entry, ChatEntry):
        out["body"] = entry.body
    elif isinstance(entry, AudioClip):
        # Playback is the presentation layer's call; never auto-played here
        out["encoded_as"] = entry.encoded_as
        out["payload_len"] = len(entry.payload)
    return out


def _audio_json(session: HelperSession) -> dict[str, Any]:
    state = session.audio.state
    return {
        "state": state.state.value,
        "capture_id": state.capture_id,
        "last_error": state.last_error,
        "permission_denied": state.permission_denied,
    }


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/session")
    async def get_session(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        return _session(request).snapshot()

    @app.get("/log")
    async def get_log( # pyright: ignore[reportUnusedFunction]
        request: Request,
        since: int = Query(default=0, ge=0),
    ) -> dict[str, Any]:
        session = _session(request)
        tail = session.entry_log.entries_since(since)
        return {
            "entries": [_entry_to_json(since + i, e) for i, e in enumerate(tail)],
            "next": since + len(tail),
        }

    # -------------------------
    # Chat / alert
    # -------------------------

    @app.post("/chat")
    async def post_chat(request: Request, body: ChatBody) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        session = _session(request)
        entry = await session.chat.send(body.text)
        return {
            "accepted": entry is not None,
            "link_state": session.connection.link_state.value,
        }

    @app.post("/alert")
    async def post_alert(request: Request, body: AlertBody) -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        session = _session(request)
        outcome = await session.alert.trigger(confirm=lambda _prompt: body.confirmed)
        return {"outcome": outcome.value}

    # -------------------------
    # Location
    # -------------------------

    @app.post("/location/request")
    async def post_location_request( # pyright: ignore[reportUnusedFunction]
        request: Request,
        body: LocationRequestBody | None = None,
    ) -> dict[str, Any]:
        session = _session(request)
        result = await session.location.request_once(silent=body.silent if body else False)
        return {
            "sent": result.sent,
            "error": result.error,
            "permission_denied": result.permission_denied,
            "silent": result.silent,
        }

    @app.post("/location/sample")
    async def post_location_sample( # pyright: ignore[reportUnusedFunction]
        request: Request,
        body: LocationSampleBody,
    ) -> dict[str, bool]:
        source = _push_position(_session(request))
        source.push(
            PositionSample(
                latitude=body.latitude,
                longitude=body.longitude,
                captured_at=body.captured_at if body.captured_at is not None else time.time(),
            )
        )
        return {"accepted": not source.permission_denied}

    @app.post("/location/permission")
    async def post_location_permission( # pyright: ignore[reportUnusedFunction]
        request: Request,
        body: PermissionBody,
    ) -> dict[str, bool]:
        _push_position(_session(request)).set_permission(body.granted)
        return {"granted": body.granted}

    # -------------------------
    # Push-to-talk
    # -------------------------

    @app.post("/audio/press")
    async def post_audio_press(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        session = _session(request)
        await session.audio.press()
        return _audio_json(session)

    @app.post("/audio/release")
    async def post_audio_release(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        session = _session(request)
        await session.audio.release()
        return _audio_json(session)

    @app.post("/audio/toggle")
    async def post_audio_toggle(request: Request) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        session = _session(request)
        await session.audio.toggle()
        return _audio_json(session)

    @app.post("/audio/chunk")
    async def post_audio_chunk(request: Request) -> dict[str, bool]: # pyright: ignore[reportUnusedFunction]
        """Raw recorded bytes in the request body."""
        source = _push_audio(_session(request))
        chunk = await request.body()
        return {"accepted": source.feed(chunk)}

    @app.post("/microphone/permission")
    async def post_microphone_permission( # pyright: ignore[reportUnusedFunction]
        request: Request,
        body: PermissionBody,
    ) -> dict[str, bool]:
        _push_audio(_session(request)).set_permission(body.granted)
        return {"granted": body.granted}


def _push_position(session: HelperSession) -> PushPositionSource:
    source = session.position_source
    if not isinstance(source, PushPositionSource):
        log_event({
            "event_type": "PUSH_REJECTED",
            "session_id": session.session_id,
            "device": "position",
        })
        raise HTTPException(status_code=409, detail="position source is not push-fed")
    return source


def _push_audio(session: HelperSession) -> PushAudioSource:
    source = session.audio_source
    if not isinstance(source, PushAudioSource):
        log_event({
            "event_type": "PUSH_REJECTED",
            "session_id": session.session_id,
            "device": "microphone",
        })
        raise HTTPException(status_code=409, detail="audio source is not push-fed")
    return source
