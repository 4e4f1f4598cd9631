"""Fakes of the flow collaborators and small event builders."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from finbot.core.errors import IdentityLookupFailure, SinkFailure
from finbot.services.intents import (
    ChatUser, CommandIntent, Event, TextIntent, normalize_callback,
)
from finbot.services.sessions import Candidate, Transaction
from finbot.services.transactions import BalanceSummary, StoredTransaction

TODAY = date(2026, 2, 10)
CHAT = "1001"
USER = ChatUser(telegram_id=42, chat_id=1001, first_name="Asha", username="asha")
IDENTITY = 7


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 2, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kw) -> None:
        self.now += timedelta(**kw)


class FakeParser:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = list(result or [])
        self.error = error
        self.calls: list[tuple[str, date]] = []

    async def parse(self, text: str, reference_date: date) -> list[Candidate]:
        self.calls.append((text, reference_date))
        if self.error:
            raise self.error
        return list(self.result)


class FakeSink:
    """TransactionSink + Ledger; `fail_on` holds 1-based call numbers that fail."""

    def __init__(self, fail_on: set[int] | None = None) -> None:
        self.created: list[tuple[int, Transaction]] = []
        self.attempts = 0
        self.fail_on = fail_on or set()
        self.ledger_down = False

    async def create(self, identity: int, transaction: Transaction) -> int:
        self.attempts += 1
        if self.attempts in self.fail_on:
            raise SinkFailure("db down")
        self.created.append((identity, transaction))
        return len(self.created)

    async def recent(self, identity: int, limit: int = 5) -> list[StoredTransaction]:
        if self.ledger_down:
            raise SinkFailure("db down")
        items = [StoredTransaction(i + 1, t) for i, (_, t) in enumerate(self.created)]
        return list(reversed(items))[:limit]

    async def summary(self, identity: int) -> BalanceSummary:
        if self.ledger_down:
            raise SinkFailure("db down")
        inc = sum((t.amount for _, t in self.created if t.type == "income"), Decimal("0"))
        exp = sum((t.amount for _, t in self.created if t.type == "expense"), Decimal("0"))
        return BalanceSummary(income=inc, expenses=exp, total_transactions=len(self.created))


class FakeIdentities:
    def __init__(self, linked: bool = True, emails: dict[str, int] | None = None) -> None:
        self.links: dict[int, int] = {USER.telegram_id: IDENTITY} if linked else {}
        self.emails = emails if emails is not None else {"asha@example.com": IDENTITY}
        self.down = False

    async def resolve(self, user: ChatUser) -> int | None:
        if self.down:
            raise IdentityLookupFailure("down")
        return self.links.get(user.telegram_id)

    async def find_identity_by_email(self, email: str) -> int | None:
        if self.down:
            raise IdentityLookupFailure("down")
        return self.emails.get(email)

    async def link(self, user: ChatUser, identity: int) -> None:
        self.links[user.telegram_id] = identity


def tx(amount: str, category: str = "food", description: str = "Lunch",
       tx_type: str = "expense", when: date = TODAY) -> Transaction:
    return Transaction(type=tx_type, category=category, amount=Decimal(amount),
                       description=description, date=when)


def cand(amount: str, category: str = "food", description: str = "Lunch") -> Candidate:
    return Candidate(transaction=tx(amount, category, description), confidence=0.9)


def press(data: str, conversation_id: str = CHAT, user: ChatUser = USER) -> Event:
    return Event(conversation_id, user, normalize_callback(data))


def say(text: str, conversation_id: str = CHAT, user: ChatUser = USER) -> Event:
    return Event(conversation_id, user, TextIntent(text))


def command(name: str, conversation_id: str = CHAT, user: ChatUser = USER) -> Event:
    return Event(conversation_id, user, CommandIntent(name))


