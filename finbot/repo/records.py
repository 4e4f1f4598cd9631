# finbot/repo/records.py
from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession
from finbot.models.operation import Operation


async def add_operation(
    session: AsyncSession,
    user_id: int,
    amount: Decimal,
    category: str,
    description: str | None,
    op_type: str,  # "income" | "expense"
    op_date: date,
) -> Operation:
    op = Operation(
        user_id=user_id,
        amount=amount,
        category=category,
        description=description,
        type=op_type,
        date=op_date,
        created_at=datetime.utcnow(),
    )
    session.add(op)
    await session.flush()
    return op


async def get_recent_operations(session: AsyncSession, user_id: int, limit: int = 5) -> list[Operation]:
    q = await session.execute(
        select(Operation)
        .where(Operation.user_id == user_id)
        .order_by(desc(Operation.date), desc(Operation.id))
        .limit(limit)
    )
    return list(q.scalars().all())


async def totals_by_type(session: AsyncSession, user_id: int) -> dict[str, tuple[Decimal, int]]:
    """{"income": (sum, count), "expense": (sum, count)}; missing types are zero."""
    q = await session.execute(
        select(Operation.type, func.sum(Operation.amount), func.count(Operation.id))
        .where(Operation.user_id == user_id)
        .group_by(Operation.type)
    )
    out: dict[str, tuple[Decimal, int]] = {"income": (Decimal("0"), 0), "expense": (Decimal("0"), 0)}
    for op_type, total, count in q.all():
        out[op_type] = (Decimal(str(total or 0)), int(count or 0))
    return out
