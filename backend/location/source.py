"""
Position source contract.

Interface only: no gating, no relay, no throttling here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator


@dataclass(frozen=True)
class PositionSample:
    """
    One position fix.

    captured_at:
        Epoch seconds when the source produced the fix.
    """
    latitude: float
    longitude: float
    captured_at: float


class PositionSource(ABC):
    """
    Abstract continuous / one-shot position source.

    Both methods raise errors.PermissionDenied when the user refused
    location access and errors.SourceUnavailable when no fix can be
    produced.
    """

    @abstractmethod
    async def current_position(self) -> PositionSample:
        """Request a single current fix."""
        raise NotImplementedError

    @abstractmethod
    def watch(self) -> AsyncIterator[PositionSample]:
        """
        Yield every new fix as the source produces it.

        Iteration ends when the source is closed; cancelling the consuming
        task must release the underlying subscription.
        """
        raise NotImplementedError
