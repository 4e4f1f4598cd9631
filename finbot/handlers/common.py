# finbot/handlers/common.py
from __future__ import annotations

import logging

from aiogram.types import CallbackQuery, Message, User

from finbot.services.flow import FlowController
from finbot.services.intents import ChatUser, Event, Intent
from finbot.ui.keyboards import reply_markup
from finbot.ui.messages import Reply, ReplyKind, SERVICE_DOWN

log = logging.getLogger(__name__)


def chat_user(user: User, chat_id: int) -> ChatUser:
    return ChatUser(
        telegram_id=user.id,
        chat_id=chat_id,
        first_name=user.first_name,
        username=user.username,
    )


async def run_flow(flow: FlowController, m: Message, user: User, intent: Intent) -> list[Reply]:
    event = Event(conversation_id=str(m.chat.id), user=chat_user(user, m.chat.id), intent=intent)
    try:
        return await flow.handle(event)
    except Exception:
        # logged here; the user gets a generic notice
        log.exception('flow_failed conv="%s"', event.conversation_id)
        return [Reply(ReplyKind.NOTICE, SERVICE_DOWN)]


async def send_replies(m: Message, replies: list[Reply]) -> None:
    for r in replies:
        await m.answer(r.text, reply_markup=reply_markup(r))


async def safe_answer(c: CallbackQuery, text: str | None = None) -> None:
    try:
        await c.answer(text or "")
    except Exception as e:
        log.debug("callback answer suppressed: %s", e)
