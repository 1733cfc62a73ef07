"""
One-shot emergency alert.

The caller only ever learns "sent" or "cancelled"; delivery to the
owner is never confirmed.
"""

from __future__ import annotations

import inspect
from enum import Enum
from typing import Awaitable, Callable, Union

from constants import ALERT_CONFIRM_PROMPT
from observability.logger import log_event
from protocol.relay_events import RelayEvent, encode_alert
from session.connection import ConnectionManager


ConfirmFn = Callable[[str], Union[bool, Awaitable[bool]]]


class AlertOutcome(str, Enum):
    CANCELLED = "cancelled"
    SENT = "sent"


class AlertTrigger:
    """
    Fires the emergency alarm after an explicit yes/no confirmation.

    confirm receives the prompt text and returns (or resolves to) True
    for "yes". The default gate refuses, so an unwired trigger can never
    fire by accident.
    """

    def __init__(
        self,
        *,
        connection: ConnectionManager,
        confirm: ConfirmFn | None = None,
    ) -> None:
        self._connection = connection
        self._confirm: ConfirmFn = confirm or (lambda _prompt: False)

    async def trigger(self, confirm: ConfirmFn | None = None) -> AlertOutcome:
        gate = confirm or self._confirm

        answer = gate(ALERT_CONFIRM_PROMPT)
        if inspect.isawaitable(answer):
            answer = await answer

        if not answer:
            log_event({
                **self._connection.log_context(),
                "event_type": "ALERT_CANCELLED",
            })
            return AlertOutcome.CANCELLED

        transmitted = await self._connection.send(
            RelayEvent.ALERT_TRIGGER,
            encode_alert(self._connection.room_token),
        )
        log_event({
            **self._connection.log_context(),
            "event_type": "ALERT_SENT",
            "transmitted": transmitted,
        })
        return AlertOutcome.SENT
