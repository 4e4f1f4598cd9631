"""aiogram handlers driven with stand-in Message/CallbackQuery objects."""
from __future__ import annotations

import asyncio
from datetime import date
from types import SimpleNamespace

import pytest

from finbot.handlers.chat import on_button, on_text
from finbot.services.sessions import ManualStep
from finbot.ui import messages as ui
from tests.helpers import CHAT, press, say

pytestmark = pytest.mark.asyncio

FROM_USER = SimpleNamespace(id=42, first_name="Asha", username="asha")


class Chat:
    """Collects what the bot sends into one chat."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.chat = SimpleNamespace(id=int(CHAT))

    def message(self, text: str | None = None) -> SimpleNamespace:
        async def answer(body: str, reply_markup=None) -> None:
            self.sent.append(body)

        return SimpleNamespace(chat=self.chat, from_user=FROM_USER, text=text, answer=answer)

    def callback(self, data: str, answer_delay: float = 0.0) -> SimpleNamespace:
        async def answer(text: str = "") -> None:
            # a slow round trip to Telegram
            await asyncio.sleep(answer_delay)

        return SimpleNamespace(data=data, message=self.message(), from_user=FROM_USER, answer=answer)


async def _to_date_step(flow) -> None:
    for e in (press("mode:manual"), press("type:expense"), press("cat:expense:food"),
              say("50"), say("Lunch")):
        await flow.handle(e)


async def test_tap_then_text_are_applied_in_arrival_order(flow, store) -> None:
    await _to_date_step(flow)
    chat = Chat()

    tap = asyncio.create_task(on_button(chat.callback("date:custom", answer_delay=0.05), flow))
    typed = asyncio.create_task(on_text(chat.message("01/02/2026"), flow))
    await asyncio.wait_for(asyncio.gather(tap, typed), 1)

    session = store.get(CHAT)
    assert session.step is ManualStep.CONFIRM
    assert session.state.draft.date == date(2026, 2, 1)
    assert ui.USE_BUTTONS not in chat.sent


async def test_button_replies_are_sent_to_the_chat(flow) -> None:
    chat = Chat()
    await on_button(chat.callback("mode:manual"), flow)
    assert chat.sent == [ui.ASK_TYPE]


async def test_button_without_message_is_only_acknowledged(flow, store) -> None:
    acked = []

    async def answer(text: str = "") -> None:
        acked.append(text)

    c = SimpleNamespace(data="mode:manual", message=None, from_user=FROM_USER, answer=answer)
    await on_button(c, flow)

    assert acked == [""]
    assert not store.has(CHAT)


async def test_flow_crash_becomes_a_notice(flow, store, monkeypatch) -> None:
    async def boom(event):
        raise RuntimeError("bug")

    monkeypatch.setattr(flow, "handle", boom)
    chat = Chat()
    await on_text(chat.message("hello"), flow)
    assert chat.sent == [ui.SERVICE_DOWN]
