"""Manual-entry wizard: type -> category -> amount -> description -> date -> confirm."""
from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from finbot.services.flow import FlowController
from finbot.services.sessions import ManualStep, Mode
from finbot.ui import messages as ui
from finbot.ui.messages import ReplyKind
from tests.helpers import CHAT, IDENTITY, TODAY, FakeSink, command, press, say

pytestmark = pytest.mark.asyncio


async def _walk_to_confirm(flow, *, date_button: str = "date:today") -> None:
    for event in (
        press("mode:manual"),
        press("type:expense"),
        press("cat:expense:food"),
        say("50"),
        say("Lunch"),
        press(date_button),
    ):
        await flow.handle(event)


async def test_happy_path_saves_exactly_once(flow, store, sink) -> None:
    assert not store.has(CHAT)
    await _walk_to_confirm(flow)
    session = store.get(CHAT)
    assert session.step is ManualStep.CONFIRM

    replies = await flow.handle(press("confirm:save"))

    assert len(sink.created) == 1
    identity, t = sink.created[0]
    assert identity == IDENTITY
    assert (t.type, t.category, t.amount, t.description, t.date) == (
        "expense", "food", Decimal("50.00"), "Lunch", TODAY,
    )
    assert not store.has(CHAT)
    assert replies[-1].text == ui.SAVED


async def test_each_step_prompts_for_the_next(flow) -> None:
    r = await flow.handle(press("mode:manual"))
    assert r[0].text == ui.ASK_TYPE
    r = await flow.handle(press("type:income"))
    assert r[0].text == "Select income category:"
    r = await flow.handle(press("cat:income:salary"))
    assert r[0].text.startswith("Category: Salary")
    r = await flow.handle(say("$4,500"))
    assert r[0].text == ui.ASK_DESCRIPTION
    r = await flow.handle(say("  February salary "))
    assert r[0].text == ui.ASK_DATE
    r = await flow.handle(press("date:yesterday"))
    assert r[0].kind is ReplyKind.PREVIEW
    assert "Amount: ₹4,500.00" in r[0].text
    assert "Description: February salary" in r[0].text
    assert [b.data for row in r[0].buttons for b in row] == ["confirm:save", "confirm:edit", "confirm:cancel"]


async def test_custom_date(flow, store, sink) -> None:
    await _walk_to_confirm(flow, date_button="date:custom")
    assert store.get(CHAT).step is ManualStep.CUSTOM_DATE

    r = await flow.handle(say((TODAY + timedelta(days=1)).isoformat()))
    assert "Date cannot be in the future" in r[0].text
    assert store.get(CHAT).step is ManualStep.CUSTOM_DATE

    await flow.handle(say("01/02/2026"))
    await flow.handle(press("confirm:save"))
    assert sink.created[0][1].date.isoformat() == "2026-02-01"


async def test_invalid_amount_reprompts_and_keeps_draft(flow, store) -> None:
    for e in (press("mode:manual"), press("type:expense"), press("cat:expense:food")):
        await flow.handle(e)
    before = store.get(CHAT).state

    replies = await flow.handle(say("-5"))

    assert replies[0].kind is ReplyKind.NOTICE
    assert "Amount must be greater than 0" in replies[0].text
    assert replies[1].text.startswith("Category: Food")
    assert store.get(CHAT).state == before


@pytest.mark.parametrize("data, at_amount", [
    ("cat:income:salary", False),   # category of the other type
    ("type:income", True),          # earlier step
    ("date:today", True),           # later step
    ("confirm:save", True),         # confirm before the preview
])
async def test_wrong_button_for_step_is_rejected(flow, store, sink, data, at_amount) -> None:
    for e in (press("mode:manual"), press("type:expense")):
        await flow.handle(e)
    if at_amount:
        await flow.handle(press("cat:expense:food"))
    before = store.get(CHAT).state

    replies = await flow.handle(press(data))

    assert replies[0].text == ui.USE_BUTTONS
    assert store.get(CHAT).state == before
    assert sink.created == []


async def test_text_on_button_step_is_rejected(flow, store) -> None:
    await flow.handle(press("mode:manual"))
    replies = await flow.handle(say("expense"))
    assert replies[0].text == ui.USE_BUTTONS
    assert replies[1].text == ui.ASK_TYPE
    assert store.get(CHAT).step is ManualStep.TYPE
    assert store.get(CHAT).state.draft.type is None


async def test_sink_failure_keeps_session_for_retry(store, parser, identities) -> None:
    sink = FakeSink(fail_on={1})
    flow = FlowController(store, parser, sink, sink, identities, today=lambda: TODAY)
    await _walk_to_confirm(flow)

    replies = await flow.handle(press("confirm:save"))
    assert replies[0].text == ui.SAVE_FAILED
    assert store.get(CHAT).step is ManualStep.CONFIRM
    assert sink.attempts == 1 and sink.created == []

    # no automatic retry happened; the user retries explicitly
    await flow.handle(press("confirm:save"))
    assert sink.attempts == 2
    assert len(sink.created) == 1
    assert not store.has(CHAT)


@pytest.mark.parametrize("action, text", [
    ("confirm:edit", ui.EDIT_RESTART),
    ("confirm:cancel", ui.CANCELLED),
])
async def test_edit_and_cancel_discard_without_saving(flow, store, sink, action, text) -> None:
    await _walk_to_confirm(flow)
    replies = await flow.handle(press(action))
    assert replies[0].text == text
    assert sink.created == []
    assert not store.has(CHAT)


async def test_expired_session_is_stale(flow, store, clock, sink) -> None:
    await _walk_to_confirm(flow)
    clock.advance(minutes=31)
    replies = await flow.handle(press("confirm:save"))
    assert replies[0].text == ui.SESSION_EXPIRED
    assert sink.created == []
    assert not store.has(CHAT)


async def test_manual_button_in_nlp_mode_is_stale(flow, store) -> None:
    await flow.handle(press("mode:nlp"))
    replies = await flow.handle(press("type:expense"))
    assert replies[0].text == ui.SESSION_EXPIRED
    assert store.get(CHAT).mode is Mode.NLP


async def test_cancel_command_clears(flow, store) -> None:
    await flow.handle(press("mode:manual"))
    replies = await flow.handle(command("cancel"))
    assert replies[0].text == ui.CANCELLED_IDLE
    assert not store.has(CHAT)
