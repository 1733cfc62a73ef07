"""
Relay wire contract (socket.io event names and payload shapes).

Outbound:
    join-room       "<roomToken>"                       (bare string)
    critical-alert  {qrId, message, location:{latitude, longitude}, capturedAt}
    send-chat       {qrId, text, sender}
    send-audio      {qrId, audioBase64}
    incoming-alarm  {qrId}

Inbound:
    receive-chat    {text, sender}
    receive-audio   "<data url>"  or  {audioBase64: "<data url>"}

Usage example:

    await connection.send(RelayEvent.CHAT_SEND, encode_chat(token, "help"))

    try:
        text, sender = decode_chat(data)
    except MalformedPayload as e:
        log_event({"event_type": "INBOUND_MALFORMED", "error": str(e)})
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from constants import LOCATION_UPDATE_MESSAGE, REMOTE_SENDER_LABEL, SELF_SENDER_LABEL
from errors import MalformedPayload
from location.source import PositionSample


class RelayEvent(str, Enum):
    """Canonical relay event names. Values are what goes on the wire."""

    # Outbound
    JOIN_ROOM = "join-room"
    LOCATION_UPDATE = "critical-alert"
    CHAT_SEND = "send-chat"
    AUDIO_SEND = "send-audio"
    ALERT_TRIGGER = "incoming-alarm"

    # Inbound
    CHAT_RECEIVE = "receive-chat"
    AUDIO_RECEIVE = "receive-audio"


# -------------------------
# Outbound encoders
# -------------------------

def encode_join(room_token: str) -> str:
    """Membership announcement. Idempotent on the relay side."""
    return room_token


def encode_location(room_token: str, sample: PositionSample) -> dict[str, Any]:
    return {
        "qrId": room_token,
        "message": LOCATION_UPDATE_MESSAGE,
        "location": {
            "latitude": sample.latitude,
            "longitude": sample.longitude,
        },
        "capturedAt": int(sample.captured_at * 1000),
    }


def encode_chat(room_token: str, text: str) -> dict[str, Any]:
    return {"qrId": room_token, "text": text, "sender": SELF_SENDER_LABEL}


def encode_audio(room_token: str, encoded_audio: str) -> dict[str, Any]:
    return {"qrId": room_token, "audioBase64": encoded_audio}


def encode_alert(room_token: str) -> dict[str, Any]:
    return {"qrId": room_token}


# -------------------------
# Inbound decoders
# -------------------------

def decode_chat(data: Any) -> tuple[str, str]:
    """
    Decode an inbound chat payload into (text, sender_label).

    A missing sender is labelled as the remote party.
    """
    if not isinstance(data, dict):
        raise MalformedPayload(f"chat payload must be an object, got {type(data).__name__}")

    text = data.get("text")
    if not isinstance(text, str):
        raise MalformedPayload("chat payload has no text")

    sender = data.get("sender")
    if not isinstance(sender, str) or not sender:
        sender = REMOTE_SENDER_LABEL

    return text, sender


def decode_audio(data: Any) -> str:
    """
    Decode an inbound audio payload into its encoded text.

    The owner side sends the bare data URL; an object carrying
    audioBase64 (the shape this side sends) is accepted too.
    """
    if isinstance(data, dict):
        data = data.get("audioBase64")

    if not isinstance(data, str) or not data:
        raise MalformedPayload("audio payload has no encoded audio text")

    return data
