import asyncio
from types import SimpleNamespace

import pytest

from src.shared.cache_service import CacheService
from src.shared.locks import KeyedLock
from src.shared.pubsub import InMemoryBroadcaster
from src.shared.scheduler import PeriodicTask


@pytest.mark.asyncio
class TestCacheService:
    async def test_ttl_expiry(self, monkeypatch):
        now = [1000.0]
        monkeypatch.setattr("src.shared.cache_service.time", SimpleNamespace(monotonic=lambda: now[0]))
        cache = CacheService()

        await cache.set("k", {"v": 1}, ttl=60)
        assert await cache.get("k") == {"v": 1}

        now[0] += 61
        assert await cache.get("k") is None

    async def test_lru_eviction(self, monkeypatch):
        now = [0.0]

        def tick():
            now[0] += 1
            return now[0]

        monkeypatch.setattr("src.shared.cache_service.time", SimpleNamespace(monotonic=tick))
        cache = CacheService(max_size=2)

        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.get("a")
        await cache.set("c", 3)

        assert await cache.get("b") is None
        assert await cache.get("a") == 1
        assert await cache.get("c") == 3

    async def test_delete_and_stats(self):
        cache = CacheService()
        await cache.set("k", 1)

        assert await cache.delete("k") is True
        assert await cache.delete("k") is False
        stats = await cache.get_stats()
        assert stats["backend"] == "in_memory"
        assert stats["total_items"] == 0


@pytest.mark.asyncio
class TestKeyedLock:
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.acquire("P"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])
        assert len(locks) == 0

    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        entered = asyncio.Event()

        async def holder():
            async with locks.acquire("A"):
                await asyncio.wait_for(entered.wait(), timeout=1)

        async def other():
            async with locks.acquire("B"):
                entered.set()

        await asyncio.gather(holder(), other())
        assert len(locks) == 0


@pytest.mark.asyncio
class TestInMemoryBroadcaster:
    async def test_delivers_json_to_channel_handlers(self):
        broadcaster = InMemoryBroadcaster()
        received = []

        async def handler(message):
            received.append(message)

        broadcaster.subscribe("stock-updates", handler)
        await broadcaster.publish("stock-updates", {"productId": "P", "availableStock": 3})
        await broadcaster.publish("inventory-events", {"productId": "P"})

        assert received == [{"productId": "P", "availableStock": 3}]

    async def test_failing_handler_is_isolated(self):
        broadcaster = InMemoryBroadcaster()
        received = []

        async def broken(message):
            raise RuntimeError("handler bug")

        async def healthy(message):
            received.append(message)

        broadcaster.subscribe("inventory-events", broken)
        broadcaster.subscribe("inventory-events", healthy)

        await broadcaster.publish("inventory-events", {"productId": "P"})
        assert received == [{"productId": "P"}]


@pytest.mark.asyncio
class TestPeriodicTask:
    async def test_run_once_swallows_failures(self):
        async def failing():
            raise RuntimeError("boom")

        task = PeriodicTask("failing", failing, interval_seconds=60)
        assert await task.run_once() is None

    async def test_start_and_stop(self):
        calls = []

        async def job():
            calls.append(1)

        task = PeriodicTask("fast", job, interval_seconds=0.01)
        task.start()
        assert task.is_running
        await asyncio.sleep(0.05)
        await task.stop()

        assert not task.is_running
        assert len(calls) >= 1
