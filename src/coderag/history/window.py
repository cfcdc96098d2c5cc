"""Bounded, most-recent-first conversation window per session."""
from __future__ import annotations

import asyncio
import logging
import weakref
from enum import Enum
from typing import Awaitable, List, TypeVar

from coderag.errors import CodeRagError, HistoryStoreFailure
from coderag.telemetry import emit_history_event
from coderag.timeouts import with_timeout

from .store import ListStore

LOGGER = logging.getLogger(__name__)

SENTINEL = "Start of messages"
DEFAULT_MAX_LEN = 6

T = TypeVar("T")


class HistoryState(str, Enum):
    UNINITIALIZED = "uninitialized"
    PLACEHOLDER = "placeholder"
    POPULATED = "populated"


def history_key(session_id: str) -> str:
    return f"{session_id}_chats"


class HistoryWindow:
    """Sliding window of ``"User: ..."`` / ``"Assistant: ..."`` turns.

    New turns are pushed at the head. Once the list reaches ``max_len`` the two
    oldest entries are dropped. A fresh window holds a single sentinel entry
    that the first real turn removes. Mutations for one session run under a
    per-session lock.
    """

    def __init__(self, store: ListStore, *, max_len: int = DEFAULT_MAX_LEN, timeout: float | None = 30.0) -> None:
        if max_len < 2:
            raise ValueError("max_len must be at least 2")
        self.store = store
        self.max_len = max_len
        self.timeout = timeout
        # A lock lives only as long as some coroutine holds or awaits it.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await with_timeout(awaitable, service="history store", timeout=self.timeout)
        except CodeRagError:
            raise
        except Exception as exc:
            raise HistoryStoreFailure("History store call failed", cause=exc) from exc

    async def connect(self) -> None:
        await self.store.connect()

    async def close(self) -> None:
        await self.store.close()

    async def state(self, session_id: str) -> HistoryState:
        entries = await self._call(self.store.range_all(history_key(session_id)))
        if not entries:
            return HistoryState.UNINITIALIZED
        if SENTINEL in entries:
            return HistoryState.PLACEHOLDER
        return HistoryState.POPULATED

    async def ensure_exists(self, session_id: str) -> bool:
        """Create the window with its sentinel; return ``True`` if it was created."""

        key = history_key(session_id)
        async with self._lock(session_id):
            if await self._call(self.store.exists(key)):
                return False
            await self._call(self.store.push_head(key, SENTINEL))
        emit_history_event("history.created", session_id=session_id, length=1)
        return True

    async def _append_locked(self, session_id: str, text: str) -> None:
        key = history_key(session_id)
        await self._call(self.store.push_head(key, text))
        entries = await self._call(self.store.range_all(key))
        if entries and entries[-1] == SENTINEL:
            await self._call(self.store.remove_value(key, SENTINEL, 1))
        await self._trim_locked(session_id, self.max_len)

    async def _trim_locked(self, session_id: str, max_len: int) -> None:
        key = history_key(session_id)
        length = await self._call(self.store.length(key))
        while length >= max_len:
            await self._call(self.store.pop_tail(key))
            await self._call(self.store.pop_tail(key))
            length = await self._call(self.store.length(key))
        emit_history_event("history.trimmed", session_id=session_id, length=length)

    async def append_turn(self, session_id: str, text: str) -> None:
        async with self._lock(session_id):
            await self._append_locked(session_id, text)

    async def trim(self, session_id: str, max_len: int | None = None) -> None:
        async with self._lock(session_id):
            await self._trim_locked(session_id, max(2, max_len or self.max_len))

    async def record_exchange(self, session_id: str, user_text: str, assistant_text: str) -> None:
        """Append a user turn and the assistant reply as one serialised step."""

        async with self._lock(session_id):
            await self._append_locked(session_id, f"User: {user_text}")
            await self._append_locked(session_id, f"Assistant: {assistant_text}")

    async def read_all(self, session_id: str) -> List[str]:
        """Return every stored entry, most recent first."""

        return await self._call(self.store.range_all(history_key(session_id)))

    async def chronological(self, session_id: str) -> List[str]:
        """Return real turns oldest first, without the sentinel."""

        entries = await self.read_all(session_id)
        return [entry for entry in reversed(entries) if entry != SENTINEL]

    async def clear(self, session_id: str) -> None:
        async with self._lock(session_id):
            await self._call(self.store.delete(history_key(session_id)))
        emit_history_event("history.cleared", session_id=session_id, length=0)


__all__ = ["DEFAULT_MAX_LEN", "HistoryState", "HistoryWindow", "SENTINEL", "history_key"]
