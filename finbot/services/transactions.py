# finbot/services/transactions.py
"""
Persistence side of the bot, behind the narrow contracts the flow uses:

    TransactionSink.create(identity, transaction) -> id   (append only)
    Ledger.recent(identity, limit) / Ledger.summary(identity)
    IdentityDirectory.resolve / find_identity_by_email / link

`identity` is the registered user's id. Every SQLAlchemy error is converted
into the error taxonomy here, so callers never see driver exceptions.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finbot.core.db import session_scope
from finbot.core.errors import IdentityLookupFailure, SinkFailure
from finbot.repo.records import add_operation, get_recent_operations, totals_by_type
from finbot.repo.users import find_user_by_email, get_linked_user_id, link_telegram_user
from finbot.services.categories import display_name
from finbot.services.intents import ChatUser
from finbot.services.sessions import Transaction

log = logging.getLogger(__name__)

Identity = int


@dataclass(frozen=True)
class StoredTransaction:
    id: int
    transaction: Transaction


@dataclass(frozen=True)
class BalanceSummary:
    income: Decimal
    expenses: Decimal
    total_transactions: int

    @property
    def balance(self) -> Decimal:
        return self.income - self.expenses


class TransactionSink(Protocol):
    async def create(self, identity: Identity, transaction: Transaction) -> int: ...


class Ledger(Protocol):
    async def recent(self, identity: Identity, limit: int = 5) -> list[StoredTransaction]: ...

    async def summary(self, identity: Identity) -> BalanceSummary: ...


class IdentityDirectory(Protocol):
    async def resolve(self, user: ChatUser) -> Identity | None: ...

    async def find_identity_by_email(self, email: str) -> Identity | None: ...

    async def link(self, user: ChatUser, identity: Identity) -> None: ...


class DatabaseTransactions:
    """TransactionSink + Ledger over the operations table."""

    def __init__(self, factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._factory = factory

    async def create(self, identity: Identity, transaction: Transaction) -> int:
        try:
            async with session_scope(self._factory) as s:
                op = await add_operation(
                    session=s,
                    user_id=identity,
                    amount=transaction.amount,
                    category=display_name(transaction.category),
                    description=transaction.description,
                    op_type=transaction.type,
                    op_date=transaction.date,
                )
                op_id = op.id
        except SQLAlchemyError as e:
            log.exception("transaction_create_failed user=%s", identity)
            raise SinkFailure("could not save transaction") from e
        log.info("transaction_created id=%s user=%s type=%s", op_id, identity, transaction.type)
        return op_id

    async def recent(self, identity: Identity, limit: int = 5) -> list[StoredTransaction]:
        try:
            async with session_scope(self._factory) as s:
                ops = await get_recent_operations(s, identity, limit)
        except SQLAlchemyError as e:
            raise SinkFailure("could not read transactions") from e
        return [
            StoredTransaction(
                id=o.id,
                transaction=Transaction(
                    type=o.type,
                    category=(o.category or "other").lower(),
                    amount=Decimal(str(o.amount)),
                    description=o.description or "",
                    date=o.date,
                ),
            )
            for o in ops
        ]

    async def summary(self, identity: Identity) -> BalanceSummary:
        try:
            async with session_scope(self._factory) as s:
                totals = await totals_by_type(s, identity)
        except SQLAlchemyError as e:
            raise SinkFailure("could not read balance") from e
        income, n_inc = totals["income"]
        expenses, n_exp = totals["expense"]
        cent = Decimal("0.01")
        return BalanceSummary(
            income=income.quantize(cent),
            expenses=expenses.quantize(cent),
            total_transactions=n_inc + n_exp,
        )


class DatabaseIdentities:
    def __init__(self, factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._factory = factory

    async def resolve(self, user: ChatUser) -> Identity | None:
        try:
            async with session_scope(self._factory) as s:
                return await get_linked_user_id(s, user.telegram_id)
        except SQLAlchemyError as e:
            raise IdentityLookupFailure("could not resolve user") from e

    async def find_identity_by_email(self, email: str) -> Identity | None:
        try:
            async with session_scope(self._factory) as s:
                u = await find_user_by_email(s, email)
                return u.id if u else None
        except SQLAlchemyError as e:
            raise IdentityLookupFailure("could not look up email") from e

    async def link(self, user: ChatUser, identity: Identity) -> None:
        try:
            async with session_scope(self._factory) as s:
                await link_telegram_user(
                    s,
                    tg_id=user.telegram_id,
                    chat_id=user.chat_id,
                    user_id=identity,
                    first_name=user.first_name,
                    username=user.username,
                )
        except SQLAlchemyError as e:
            raise IdentityLookupFailure("could not link account") from e
        log.info("telegram_linked tg=%s user=%s", user.telegram_id, identity)
