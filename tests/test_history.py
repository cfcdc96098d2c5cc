"""Tests for the bounded per-session history window."""
from __future__ import annotations

import asyncio
import gc
from unittest.mock import AsyncMock, Mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from coderag.config import Settings
from coderag.errors import HistoryStoreFailure
from coderag.history import (
    SENTINEL,
    HistoryState,
    HistoryWindow,
    InMemoryListStore,
    RedisListStore,
    create_list_store,
    history_key,
)


@pytest.fixture
def window() -> HistoryWindow:
    return HistoryWindow(InMemoryListStore())


@pytest.mark.anyio
async def test_state_machine_from_uninitialized_to_populated(window: HistoryWindow) -> None:
    assert await window.state("s1") is HistoryState.UNINITIALIZED

    assert await window.ensure_exists("s1") is True
    assert await window.read_all("s1") == [SENTINEL]
    assert await window.state("s1") is HistoryState.PLACEHOLDER

    await window.append_turn("s1", "User: hi")

    assert await window.read_all("s1") == ["User: hi"]
    assert await window.state("s1") is HistoryState.POPULATED


@pytest.mark.anyio
async def test_ensure_exists_is_idempotent(window: HistoryWindow) -> None:
    await window.ensure_exists("s1")
    await window.append_turn("s1", "User: hi")

    assert await window.ensure_exists("s1") is False
    assert await window.read_all("s1") == ["User: hi"]


@pytest.mark.anyio
async def test_window_never_exceeds_six_entries(window: HistoryWindow) -> None:
    await window.ensure_exists("s1")
    lengths = []
    for turn in range(7):
        await window.append_turn("s1", f"User: message {turn}")
        lengths.append(len(await window.read_all("s1")))

    assert max(lengths) <= 6
    entries = await window.read_all("s1")
    assert entries[0] == "User: message 6"
    assert SENTINEL not in entries


@pytest.mark.anyio
async def test_trim_drops_the_two_oldest_entries(window: HistoryWindow) -> None:
    store = window.store
    for turn in ["t1", "t2", "t3", "t4", "t5", "t6"]:
        await store.push_head(history_key("s1"), turn)

    await window.trim("s1")

    assert await window.read_all("s1") == ["t6", "t5", "t4", "t3"]


@pytest.mark.anyio
async def test_record_exchange_and_chronological_view(window: HistoryWindow) -> None:
    await window.ensure_exists("s1")
    await window.record_exchange("s1", "what is add?", "What do you think it returns?")

    assert await window.read_all("s1") == ["Assistant: What do you think it returns?", "User: what is add?"]
    assert await window.chronological("s1") == ["User: what is add?", "Assistant: What do you think it returns?"]


@pytest.mark.anyio
async def test_concurrent_exchanges_keep_pairs_together(window: HistoryWindow) -> None:
    await window.ensure_exists("s1")

    await asyncio.gather(*(window.record_exchange("s1", f"q{n}", f"a{n}") for n in range(5)))

    entries = await window.read_all("s1")
    assert len(entries) <= 6
    for assistant, user in zip(entries[::2], entries[1::2]):
        assert assistant.replace("Assistant: a", "") == user.replace("User: q", "")


@pytest.mark.anyio
async def test_clear_resets_to_uninitialized(window: HistoryWindow) -> None:
    await window.ensure_exists("s1")
    await window.append_turn("s1", "User: hi")

    await window.clear("s1")

    assert await window.state("s1") is HistoryState.UNINITIALIZED


@pytest.mark.anyio
async def test_clear_keeps_the_lock_other_writers_are_waiting_on(window: HistoryWindow) -> None:
    await window.ensure_exists("s1")
    lock = window._lock("s1")

    async with lock:
        pending = asyncio.create_task(window.record_exchange("s1", "queued", "reply"))
        await asyncio.sleep(0)
        clearing = asyncio.create_task(window.clear("s1"))
        await asyncio.sleep(0)
        assert window._lock("s1") is lock

    await asyncio.gather(pending, clearing)
    assert window._lock("s1") is lock


@pytest.mark.anyio
async def test_idle_session_locks_are_released(window: HistoryWindow) -> None:
    for session_id in ("s1", "s2", "s3"):
        await window.record_exchange(session_id, "hi", "hello")
        await window.clear(session_id)

    gc.collect()

    assert len(window._locks) == 0


@pytest.mark.anyio
async def test_sessions_are_isolated(window: HistoryWindow) -> None:
    await window.ensure_exists("s1")
    await window.append_turn("s1", "User: hi")

    assert await window.read_all("s2") == []


def _redis_client() -> Mock:
    client = Mock()
    for name in ("ping", "exists", "lpush", "rpop", "lrem", "llen", "lrange", "delete", "aclose"):
        setattr(client, name, AsyncMock())
    return client


@pytest.mark.anyio
async def test_redis_store_maps_list_operations() -> None:
    client = _redis_client()
    client.exists.return_value = 1
    client.lpush.return_value = 2
    client.lrange.return_value = ["b", "a"]
    store = RedisListStore(client=client)
    await store.connect()

    assert await store.exists("k") is True
    assert await store.push_head("k", "b") == 2
    assert await store.range_all("k") == ["b", "a"]
    await store.remove_value("k", SENTINEL, 1)
    await store.pop_tail("k")

    client.lpush.assert_awaited_once_with("k", "b")
    client.lrange.assert_awaited_once_with("k", 0, -1)
    client.lrem.assert_awaited_once_with("k", 1, SENTINEL)
    client.rpop.assert_awaited_once_with("k")

    await store.close()
    client.aclose.assert_awaited_once()


@pytest.mark.anyio
async def test_redis_failures_propagate_as_history_store_failures() -> None:
    client = _redis_client()
    client.lpush.side_effect = RedisConnectionError("connection refused")
    window = HistoryWindow(RedisListStore(client=client))

    with pytest.raises(HistoryStoreFailure):
        await window.append_turn("s1", "User: hi")
    client.lpush.assert_awaited_once()


@pytest.mark.anyio
async def test_unreachable_redis_fails_on_connect() -> None:
    client = _redis_client()
    client.ping.side_effect = RedisConnectionError("connection refused")

    with pytest.raises(HistoryStoreFailure):
        await RedisListStore(client=client).connect()


def test_list_store_factory() -> None:
    assert isinstance(create_list_store(Settings(history_store="memory")), InMemoryListStore)
    assert isinstance(create_list_store(Settings(history_store="redis")), RedisListStore)
    with pytest.raises(ValueError):
        create_list_store(Settings(history_store="memcached"))
