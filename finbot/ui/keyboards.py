# finbot/ui/keyboards.py
from __future__ import annotations
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from finbot.ui.messages import Reply, Rows


def to_markup(rows: Rows) -> InlineKeyboardMarkup | None:
    """Neutral button rows -> Telegram inline keyboard; no rows -> no keyboard."""
    if not rows:
        return None
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text=b.text, url=b.url) if b.url
                else InlineKeyboardButton(text=b.text, callback_data=b.data)
                for b in row
            ]
            for row in rows
        ]
    )


def reply_markup(reply: Reply) -> InlineKeyboardMarkup | None:
    return to_markup(reply.buttons)
