"""
Relay link state.

link_state: DISCONNECTED | CONNECTING | JOINED

Owned exclusively by ConnectionManager. Every other component reads it
and gates its sends on it; none of them mutate it.
"""
from enum import Enum


class LinkState(str, Enum):
    """
    Lifecycle of the relay session as seen by this device.

    JOINED means the transport is up AND the membership announcement
    has been issued; sends are only attempted in this state.
    """
    DISCONNECTED = "DISCONNECTED"   # No transport session
    CONNECTING = "CONNECTING"       # Transport connect in flight
    JOINED = "JOINED"               # Connected and room announced


# Legal transitions. Anything may drop to DISCONNECTED; JOINED is only
# reachable through CONNECTING.
ALLOWED_TRANSITIONS: frozenset[tuple[LinkState, LinkState]] = frozenset({
    (LinkState.DISCONNECTED, LinkState.CONNECTING),
    (LinkState.CONNECTING, LinkState.JOINED),
    (LinkState.CONNECTING, LinkState.DISCONNECTED),
    (LinkState.JOINED, LinkState.DISCONNECTED),
})


def is_allowed_transition(prev: LinkState, new: LinkState) -> bool:
    """Return True if prev -> new is a legal LinkState transition."""
    return (prev, new) in ALLOWED_TRANSITIONS
