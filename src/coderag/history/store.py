"""List-store backends for the conversation history window."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from coderag.errors import HistoryStoreFailure

LOGGER = logging.getLogger(__name__)


class ListStore(ABC):
    """Minimal Redis-like list API keyed by string.

    ``push_head`` inserts at index 0, ``pop_tail`` removes the last element,
    and ``range_all`` returns head-to-tail order. An emptied list stops
    existing.
    """

    backend_name = "abstract"

    async def connect(self) -> None:
        """Open the backend connection."""

    async def close(self) -> None:
        """Close the backend connection."""

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    @abstractmethod
    async def push_head(self, key: str, value: str) -> int: ...

    @abstractmethod
    async def pop_tail(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def remove_value(self, key: str, value: str, count: int = 1) -> int: ...

    @abstractmethod
    async def length(self, key: str) -> int: ...

    @abstractmethod
    async def range_all(self, key: str) -> List[str]: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...


class InMemoryListStore(ListStore):
    backend_name = "memory"

    def __init__(self) -> None:
        self._lists: Dict[str, List[str]] = {}

    async def exists(self, key: str) -> bool:
        return bool(self._lists.get(key))

    async def push_head(self, key: str, value: str) -> int:
        items = self._lists.setdefault(key, [])
        items.insert(0, value)
        return len(items)

    async def pop_tail(self, key: str) -> Optional[str]:
        items = self._lists.get(key)
        if not items:
            return None
        value = items.pop()
        if not items:
            del self._lists[key]
        return value

    async def remove_value(self, key: str, value: str, count: int = 1) -> int:
        items = self._lists.get(key)
        if not items:
            return 0
        removed = 0
        kept: List[str] = []
        for item in items:
            if item == value and (count <= 0 or removed < count):
                removed += 1
                continue
            kept.append(item)
        if kept:
            self._lists[key] = kept
        else:
            del self._lists[key]
        return removed

    async def length(self, key: str) -> int:
        return len(self._lists.get(key, []))

    async def range_all(self, key: str) -> List[str]:
        return list(self._lists.get(key, []))

    async def delete(self, key: str) -> None:
        self._lists.pop(key, None)


class RedisListStore(ListStore):
    """List store backed by ``redis.asyncio``."""

    backend_name = "redis"

    def __init__(self, url: str = "redis://localhost:6379/0", *, client: Optional[aioredis.Redis] = None) -> None:
        self.url = url
        self._client = client

    async def connect(self) -> None:
        if self._client is None:
            self._client = aioredis.Redis.from_url(self.url, decode_responses=True)
        try:
            await self._client.ping()
        except RedisError as exc:
            raise HistoryStoreFailure(f"Unable to reach Redis at {self.url}", cause=exc) from exc
        LOGGER.info("Connected to Redis history store at %s", self.url)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            raise HistoryStoreFailure("Redis history store used before connect()")
        return self._client

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self.client.exists(key))
        except RedisError as exc:
            raise HistoryStoreFailure("Redis EXISTS failed", cause=exc) from exc

    async def push_head(self, key: str, value: str) -> int:
        try:
            return int(await self.client.lpush(key, value))
        except RedisError as exc:
            raise HistoryStoreFailure("Redis LPUSH failed", cause=exc) from exc

    async def pop_tail(self, key: str) -> Optional[str]:
        try:
            return await self.client.rpop(key)
        except RedisError as exc:
            raise HistoryStoreFailure("Redis RPOP failed", cause=exc) from exc

    async def remove_value(self, key: str, value: str, count: int = 1) -> int:
        try:
            return int(await self.client.lrem(key, count, value))
        except RedisError as exc:
            raise HistoryStoreFailure("Redis LREM failed", cause=exc) from exc

    async def length(self, key: str) -> int:
        try:
            return int(await self.client.llen(key))
        except RedisError as exc:
            raise HistoryStoreFailure("Redis LLEN failed", cause=exc) from exc

    async def range_all(self, key: str) -> List[str]:
        try:
            return list(await self.client.lrange(key, 0, -1))
        except RedisError as exc:
            raise HistoryStoreFailure("Redis LRANGE failed", cause=exc) from exc

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError as exc:
            raise HistoryStoreFailure("Redis DEL failed", cause=exc) from exc


__all__ = ["InMemoryListStore", "ListStore", "RedisListStore"]
