"""
Room token resolution.

The launch context is the URL the helper opened after scanning the code
(e.g. https://host/?id=ABC123), a bare query string, or an already-parsed
mapping of query parameters. It is read exactly once at startup.
"""

from __future__ import annotations

from typing import Mapping, NewType, Sequence, Union
from urllib.parse import parse_qs

from constants import ROOM_TOKEN_MAX_CHARS, ROOM_TOKEN_QUERY_PARAM
from errors import MissingToken


RoomToken = NewType("RoomToken", str)

LaunchContext = Union[str, Mapping[str, Union[str, Sequence[str]]], None]


def _extract_raw(launch_context: LaunchContext) -> str | None:
    if launch_context is None:
        return None

    if isinstance(launch_context, str):
        text = launch_context.strip()
        if not text:
            return None
        # Full URL, "?id=..." or bare "id=..." query string
        query = text.split("?", 1)[1] if "?" in text else text
        query = query.split("#", 1)[0]
        values = parse_qs(query).get(ROOM_TOKEN_QUERY_PARAM)
        return values[0] if values else None

    value = launch_context.get(ROOM_TOKEN_QUERY_PARAM)
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value[0] if value else None


def resolve_room_token(launch_context: LaunchContext) -> RoomToken:
    """
    Extract and validate the room token from the launch context.

    Raises:
        MissingToken if the token is absent, blank, contains whitespace
        or exceeds ROOM_TOKEN_MAX_CHARS. This is terminal: callers must
        not retry and must not construct any engine component.
    """
    raw = _extract_raw(launch_context)
    if raw is None:
        raise MissingToken(f"launch context has no '{ROOM_TOKEN_QUERY_PARAM}' parameter")

    token = raw.strip()
    if not token:
        raise MissingToken("room token is blank")
    if any(ch.isspace() for ch in token):
        raise MissingToken("room token contains whitespace")
    if len(token) > ROOM_TOKEN_MAX_CHARS:
        raise MissingToken(
            f"room token length {len(token)} > {ROOM_TOKEN_MAX_CHARS}"
        )

    return RoomToken(token)
