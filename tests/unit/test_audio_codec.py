# pylint: disable=missing-module-docstring,missing-function-docstring

import os

import pytest

from audio.capture import AudioCaptureSession
from audio.codec import decode_audio_payload, encode_audio_payload, split_data_url
from errors import AudioCodecError


def test_captured_buffer_survives_text_transport() -> None:
    session = AudioCaptureSession(capture_id=1)
    for chunk in (os.urandom(1024), b"\x00\xff" * 50, os.urandom(7)):
        session.append(chunk)
    payload = session.close()

    encoded = encode_audio_payload(payload, mime_type="audio/webm")

    assert encoded.startswith("data:audio/webm;base64,")
    assert decode_audio_payload(encoded) == payload


def test_empty_clip_encodes_to_empty_body() -> None:
    encoded = encode_audio_payload(b"", mime_type="audio/ogg")

    assert encoded == "data:audio/ogg;base64,"
    assert decode_audio_payload(encoded) == b""


def test_bare_base64_is_accepted() -> None:
    assert decode_audio_payload("aGVsbG8=") == b"hello"


def test_split_reports_mime_type() -> None:
    assert split_data_url("data:audio/mp4;base64,AAAA") == ("audio/mp4", "AAAA")
    assert split_data_url("AAAA") == (None, "AAAA")


@pytest.mark.parametrize(
    "text",
    [
        "data:audio/webm,not-base64",
        "data:audio/webm;base64",
        "data:audio/webm;base64,***",
        "not base64 at all",
    ],
)
def test_malformed_text_raises_codec_error(text: str) -> None:
    with pytest.raises(AudioCodecError):
        decode_audio_payload(text)


# ---------------------------------------------------------------------
# Capture session buffer
# ---------------------------------------------------------------------

def test_capture_session_keeps_arrival_order_and_skips_empty() -> None:
    session = AudioCaptureSession(capture_id=3)

    assert session.append(b"a")
    assert not session.append(b"")
    assert session.append(b"b")

    assert len(session) == 2
    assert session.byte_count() == 2
    assert session.close() == b"ab"
    assert session.closed


def test_chunks_after_close_are_dropped_and_counted() -> None:
    session = AudioCaptureSession(capture_id=3)
    session.append(b"a")
    session.close()

    assert not session.append(b"late")
    assert session.late_chunks == 1
