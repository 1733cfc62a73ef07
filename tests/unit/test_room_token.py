# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from errors import ConfigurationError, MissingToken
from session.room_token import resolve_room_token


# ---------------------------------------------------------------------
# Valid launch contexts
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    "launch_context",
    [
        "https://helper.example/?id=abc123",
        "https://helper.example/scan?lang=en&id=abc123#top",
        "?id=abc123",
        "id=abc123",
        {"id": "abc123"},
        {"id": ["abc123", "ignored"]},
    ],
)
def test_resolves_token_from_launch_context(launch_context: object) -> None:
    assert resolve_room_token(launch_context) == "abc123"  # type: ignore[arg-type]


def test_surrounding_whitespace_is_stripped() -> None:
    assert resolve_room_token({"id": "  abc123 "}) == "abc123"


def test_token_at_length_limit_is_accepted() -> None:
    token = "x" * 256
    assert resolve_room_token({"id": token}) == token


# ---------------------------------------------------------------------
# Missing / invalid tokens
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    "launch_context",
    [
        None,
        "",
        "https://helper.example/",
        "https://helper.example/?code=abc123",
        "https://helper.example/?id=",
        {"id": "   "},
        {"id": []},
        {},
        {"id": "abc 123"},
        {"id": "x" * 257},
    ],
)
def test_missing_or_invalid_token_raises(launch_context: object) -> None:
    with pytest.raises(MissingToken):
        resolve_room_token(launch_context)  # type: ignore[arg-type]


def test_missing_token_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        resolve_room_token(None)
