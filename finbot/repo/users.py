# finbot/repo/users.py
from __future__ import annotations

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from finbot.models.user import User, TelegramUser


async def find_user_by_email(session: AsyncSession, email: str) -> User | None:
    q = await session.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    )
    return q.scalar_one_or_none()


async def get_linked_user_id(session: AsyncSession, tg_id: int) -> int | None:
    q = await session.execute(
        select(TelegramUser.user_id).where(
            TelegramUser.telegram_id == tg_id,
            TelegramUser.is_active.is_(True),
        )
    )
    return q.scalar_one_or_none()


async def link_telegram_user(
    session: AsyncSession,
    tg_id: int,
    chat_id: int,
    user_id: int,
    first_name: str | None = None,
    username: str | None = None,
) -> TelegramUser:
    # upsert: an existing mapping is re-pointed and re-activated
    q = await session.execute(select(TelegramUser).where(TelegramUser.telegram_id == tg_id))
    row = q.scalar_one_or_none()
    if row:
        row.user_id = user_id
        row.chat_id = chat_id
        row.first_name = first_name
        row.username = username
        row.is_active = True
    else:
        row = TelegramUser(
            telegram_id=tg_id,
            chat_id=chat_id,
            user_id=user_id,
            first_name=first_name,
            username=username,
            is_active=True,
        )
        session.add(row)
    await session.flush()
    return row
