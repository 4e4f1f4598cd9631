# finbot/services/mailbox.py
"""
Per-conversation serialization of incoming events.

Each conversation id gets its own FIFO asyncio.Lock, created on demand and
dropped once nobody holds or waits on it. Events of one conversation run in
arrival order; events of different conversations never wait for each other.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class ConversationMailbox:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = self._locks[conversation_id] = asyncio.Lock()
        self._users[conversation_id] = self._users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            left = self._users[conversation_id] - 1
            if left:
                self._users[conversation_id] = left
            else:
                del self._users[conversation_id]
                del self._locks[conversation_id]

    def busy(self, conversation_id: str) -> bool:
        return conversation_id in self._locks

    def __len__(self) -> int:
        return len(self._locks)
