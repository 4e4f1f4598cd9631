# finbot/services/sessions.py
"""
Per-conversation dialogue state and the in-memory store that keeps it.

A conversation is either idle (no session at all) or in exactly one mode;
each mode has its own state class carrying only the fields valid for it:

    LinkingState  step: email
    ManualState   step: type -> category -> amount -> description -> date
                  [-> custom_date] -> confirm, plus the Draft
    NlpState      step: text -> review, plus candidates/cursor/saved_count

Sessions live in process memory only. They expire 30 minutes after the last
activity: lazily on every read, and proactively by the periodic sweep.
"""
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Union

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = timedelta(minutes=30)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Mode(str, Enum):
    NONE = "none"
    LINKING = "linking"
    MANUAL = "manual"
    NLP = "nlp"


class LinkingStep(str, Enum):
    EMAIL = "email"


class ManualStep(str, Enum):
    TYPE = "type"
    CATEGORY = "category"
    AMOUNT = "amount"
    DESCRIPTION = "description"
    DATE = "date"
    CUSTOM_DATE = "custom_date"
    CONFIRM = "confirm"


class NlpStep(str, Enum):
    TEXT = "text"
    REVIEW = "review"


@dataclass(frozen=True)
class Transaction:
    type: str  # "income" | "expense"
    category: str
    amount: Decimal
    description: str
    date: date


@dataclass(frozen=True)
class Candidate:
    transaction: Transaction
    confidence: float = 1.0


@dataclass(frozen=True)
class Draft:
    type: str | None = None
    category: str | None = None
    amount: Decimal | None = None
    description: str | None = None
    date: date | None = None

    def is_complete(self) -> bool:
        return None not in (self.type, self.category, self.amount, self.description, self.date)

    def to_transaction(self) -> Transaction:
        if not self.is_complete():
            raise ValueError("draft is not complete")
        return Transaction(
            type=self.type,
            category=self.category,
            amount=self.amount,
            description=self.description,
            date=self.date,
        )


@dataclass(frozen=True)
class LinkingState:
    step: LinkingStep = LinkingStep.EMAIL
    mode = Mode.LINKING


@dataclass(frozen=True)
class ManualState:
    step: ManualStep = ManualStep.TYPE
    draft: Draft = field(default_factory=Draft)
    mode = Mode.MANUAL


@dataclass(frozen=True)
class NlpState:
    step: NlpStep = NlpStep.TEXT
    candidates: tuple[Candidate, ...] = ()
    cursor: int = 0
    saved_count: int = 0
    mode = Mode.NLP

    def __post_init__(self) -> None:
        if not 0 <= self.cursor <= len(self.candidates):
            raise ValueError(f"cursor {self.cursor} outside 0..{len(self.candidates)}")

    @property
    def current(self) -> Candidate | None:
        if self.cursor < len(self.candidates):
            return self.candidates[self.cursor]
        return None

    @property
    def done(self) -> bool:
        return self.cursor == len(self.candidates)


FlowState = Union[LinkingState, ManualState, NlpState]

_revisions = itertools.count(1)


@dataclass(frozen=True)
class Session:
    conversation_id: str
    state: FlowState
    last_activity: datetime
    # unique per write; compare_and_set checks it
    revision: int = 0

    @property
    def mode(self) -> Mode:
        return self.state.mode

    @property
    def step(self) -> Enum:
        return self.state.step


class SessionStore:
    """
    Keyed session storage with TTL.

    One guard lock covers every operation, so `update` is an atomic
    read-modify-write and the sweep never interleaves with it: whichever
    takes the guard first wins entirely.
    """

    def __init__(
        self,
        timeout: timedelta = DEFAULT_TIMEOUT,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.timeout = timeout
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._guard = threading.Lock()

    def _expired(self, session: Session, now: datetime) -> bool:
        return now - session.last_activity > self.timeout

    def _live(self, conversation_id: str, now: datetime) -> Session | None:
        session = self._sessions.get(conversation_id)
        if session is None:
            return None
        if self._expired(session, now):
            del self._sessions[conversation_id]
            log.debug('session_expired conv="%s" mode=%s', conversation_id, session.mode.value)
            return None
        return session

    def _write(self, conversation_id: str, state: FlowState, now: datetime) -> Session:
        session = Session(
            conversation_id=conversation_id,
            state=state,
            last_activity=now,
            revision=next(_revisions),
        )
        self._sessions[conversation_id] = session
        return session

    def get(self, conversation_id: str) -> Session | None:
        with self._guard:
            now = self._clock()
            session = self._live(conversation_id, now)
            if session is None:
                return None
            session = replace(session, last_activity=now)
            self._sessions[conversation_id] = session
            return session

    def set(self, conversation_id: str, state: FlowState) -> Session:
        with self._guard:
            return self._write(conversation_id, state, self._clock())

    def update(self, conversation_id: str, **fields: Any) -> Session | None:
        """Patch fields of the current mode state; no-op on an absent session."""
        with self._guard:
            now = self._clock()
            session = self._live(conversation_id, now)
            if session is None:
                return None
            return self._write(conversation_id, replace(session.state, **fields), now)

    def compare_and_set(
        self,
        conversation_id: str,
        expected: Session,
        state: FlowState | None,
    ) -> bool:
        """
        Replace (or, with state=None, delete) the session only if it is still
        the one `expected` was read as. Returns False when it was swept or
        rewritten in between, leaving the store untouched.
        """
        with self._guard:
            now = self._clock()
            current = self._live(conversation_id, now)
            if current is None or current.revision != expected.revision:
                return False
            if state is None:
                del self._sessions[conversation_id]
            else:
                self._write(conversation_id, state, now)
            return True

    def clear(self, conversation_id: str) -> None:
        with self._guard:
            self._sessions.pop(conversation_id, None)

    def has(self, conversation_id: str) -> bool:
        with self._guard:
            return self._live(conversation_id, self._clock()) is not None

    def sweep(self) -> int:
        with self._guard:
            now = self._clock()
            stale = [cid for cid, s in self._sessions.items() if self._expired(s, now)]
            for cid in stale:
                del self._sessions[cid]
        if stale:
            log.info("sessions_swept count=%s", len(stale))
        return len(stale)

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)

    def stats(self) -> dict[str, Any]:
        with self._guard:
            now = self._clock()
            return {
                "active_sessions": len(self._sessions),
                "sessions": [
                    {
                        "conversation_id": cid,
                        "mode": s.mode.value,
                        "step": s.step.value,
                        "age_s": int((now - s.last_activity).total_seconds()),
                    }
                    for cid, s in self._sessions.items()
                ],
            }
