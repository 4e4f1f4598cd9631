"""
Shared fixtures for the finbot tests.

The flow is exercised against in-memory fakes of its three collaborators
(parser, sink/ledger, identity directory) and a hand-driven clock, so no
network, database or Telegram is involved except in test_transactions.py,
which runs the SQLAlchemy adapters on an in-memory aiosqlite engine.
"""
from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import pytest

_root = Path(__file__).parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from finbot.services.flow import FlowController
from finbot.services.sessions import SessionStore
from tests.helpers import TODAY, FakeClock, FakeIdentities, FakeParser, FakeSink


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> SessionStore:
    return SessionStore(timeout=timedelta(minutes=30), clock=clock)


@pytest.fixture
def parser() -> FakeParser:
    return FakeParser()


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def identities() -> FakeIdentities:
    return FakeIdentities()


@pytest.fixture
def flow(store, parser, sink, identities) -> FlowController:
    return FlowController(
        store, parser, sink, sink, identities,
        today=lambda: TODAY,
        website_url="https://example.org/",
    )
