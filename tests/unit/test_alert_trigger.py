# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

from alert.trigger import AlertOutcome, AlertTrigger
from constants import ALERT_CONFIRM_PROMPT
from fakes import FakeTransport
from session.connection import ConnectionManager
from session.room_token import RoomToken


def make_rig() -> tuple[FakeTransport, ConnectionManager]:
    transport = FakeTransport()
    cm = ConnectionManager(
        transport=transport,
        room_token=RoomToken("abc123"),
        session_id="sess_test",
        reconnect_delays_ms=(10_000,),
    )
    return transport, cm


def test_confirmed_alert_is_sent_once() -> None:
    async def scenario() -> None:
        transport, cm = make_rig()
        prompts: list[str] = []

        def confirm(prompt: str) -> bool:
            prompts.append(prompt)
            return True

        await cm.connect()
        outcome = await AlertTrigger(connection=cm).trigger(confirm)

        assert outcome is AlertOutcome.SENT
        assert prompts == [ALERT_CONFIRM_PROMPT]
        assert transport.sent("incoming-alarm") == [{"qrId": "abc123"}]
        await cm.shutdown()

    asyncio.run(scenario())


def test_declined_alert_sends_nothing() -> None:
    async def scenario() -> None:
        transport, cm = make_rig()
        await cm.connect()

        outcome = await AlertTrigger(connection=cm, confirm=lambda _p: False).trigger()

        assert outcome is AlertOutcome.CANCELLED
        assert transport.sent("incoming-alarm") == []
        await cm.shutdown()

    asyncio.run(scenario())


def test_unwired_trigger_never_fires() -> None:
    async def scenario() -> None:
        transport, cm = make_rig()
        await cm.connect()

        assert await AlertTrigger(connection=cm).trigger() is AlertOutcome.CANCELLED
        assert transport.sent("incoming-alarm") == []
        await cm.shutdown()

    asyncio.run(scenario())


def test_async_confirmation_is_awaited() -> None:
    async def scenario() -> None:
        transport, cm = make_rig()
        await cm.connect()

        async def confirm(_prompt: str) -> bool:
            await asyncio.sleep(0)
            return True

        outcome = await AlertTrigger(connection=cm, confirm=confirm).trigger()

        assert outcome is AlertOutcome.SENT
        assert len(transport.sent("incoming-alarm")) == 1
        await cm.shutdown()

    asyncio.run(scenario())


def test_alert_while_disconnected_reports_sent_but_emits_nothing() -> None:
    async def scenario() -> None:
        transport, cm = make_rig()

        outcome = await AlertTrigger(connection=cm, confirm=lambda _p: True).trigger()

        assert outcome is AlertOutcome.SENT
        assert transport.emitted == []

    asyncio.run(scenario())
