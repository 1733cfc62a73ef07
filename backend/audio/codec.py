"""
Binary <-> text codec for audio clips.

Clips travel through the relay as data URLs:

    data:audio/webm;base64,GkXfo59ChoEBQveBAULygQRC84EIQoKE...

Decoding also accepts bare base64 (no "data:" header), which some
senders use.
"""

from __future__ import annotations

import base64
import binascii

from errors import AudioCodecError

_DATA_PREFIX = "data:"
_BASE64_MARKER = ";base64,"


def encode_audio_payload(payload: bytes, *, mime_type: str) -> str:
    """Encode raw clip bytes as a base64 data URL."""
    body = base64.b64encode(payload).decode("ascii")
    return f"{_DATA_PREFIX}{mime_type}{_BASE64_MARKER}{body}"


def split_data_url(text: str) -> tuple[str | None, str]:
    """
    Split encoded audio text into (mime_type, base64_body).

    mime_type is None for bare base64.
    """
    if not text.startswith(_DATA_PREFIX):
        return None, text

    header, sep, body = text.partition(",")
    if not sep or not header.endswith(";base64"):
        raise AudioCodecError("data URL is not base64-encoded")

    mime_type = header[len(_DATA_PREFIX):-len(";base64")]
    return mime_type or None, body


def decode_audio_payload(text: str) -> bytes:
    """
    Decode a data URL (or bare base64) back into raw clip bytes.

    Raises:
        AudioCodecError on malformed input.
    """
    _, body = split_data_url(text)
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AudioCodecError(f"invalid base64 audio body: {e}") from e
