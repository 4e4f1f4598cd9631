# finbot/handlers/chat.py
# Buttons and free text go straight into the flow controller.

from __future__ import annotations

from aiogram import Router, F
from aiogram.types import CallbackQuery, Message

from finbot.handlers.common import run_flow, safe_answer, send_replies
from finbot.services.flow import FlowController
from finbot.services.intents import normalize_callback, normalize_message

router = Router(name=__name__)


@router.callback_query()
async def on_button(c: CallbackQuery, flow: FlowController) -> None:
    if c.message is None:
        await safe_answer(c)
        return
    # the chat slot is taken before the first await, so a message sent
    # right after the tap is handled after it
    replies = await run_flow(flow, c.message, c.from_user, normalize_callback(c.data))
    await safe_answer(c)
    await send_replies(c.message, replies)


@router.message(F.text)
async def on_text(m: Message, flow: FlowController) -> None:
    await send_replies(m, await run_flow(flow, m, m.from_user, normalize_message(m.text)))
