"""Per-session conversation history."""
from __future__ import annotations

from coderag.config import Settings

from .store import InMemoryListStore, ListStore, RedisListStore
from .window import SENTINEL, HistoryState, HistoryWindow, history_key


def create_list_store(settings: Settings) -> ListStore:
    if settings.history_store == "redis":
        return RedisListStore(settings.redis_url)
    if settings.history_store in {"memory", "mock"}:
        return InMemoryListStore()
    raise ValueError(f"Unsupported HISTORY_STORE backend: {settings.history_store!r}")


__all__ = [
    "HistoryState",
    "HistoryWindow",
    "InMemoryListStore",
    "ListStore",
    "RedisListStore",
    "SENTINEL",
    "create_list_store",
    "history_key",
]
