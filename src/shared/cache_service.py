import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import redis.asyncio as redis

from src.config.cache_config import cache_config


@dataclass
class CacheItem:
    """Cache item with TTL and metadata"""

    data: Any
    created_at: float
    ttl: int
    hits: int = 0


class CacheService:
    """In-memory cache with TTL and LRU eviction"""

    def __init__(self, max_size: int = cache_config.MAX_ENTRIES):
        self._cache: Dict[str, CacheItem] = {}
        self._access_order: Dict[str, float] = {}
        self._max_size = max_size
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        """Get item from cache"""
        async with self._lock:
            if key not in self._cache:
                return None

            item = self._cache[key]

            # Check TTL
            if time.monotonic() - item.created_at > item.ttl:
                del self._cache[key]
                self._access_order.pop(key, None)
                return None

            # Update access order and hit count
            self._access_order[key] = time.monotonic()
            item.hits += 1

            return item.data

    async def set(self, key: str, data: Any, ttl: int = cache_config.DEFAULT_TTL) -> None:
        """Set item in cache with TTL"""
        async with self._lock:
            # Evict if at capacity
            if len(self._cache) >= self._max_size and key not in self._cache:
                self._evict_lru()

            now = time.monotonic()
            self._cache[key] = CacheItem(data=data, created_at=now, ttl=ttl, hits=0)
            self._access_order[key] = now

    async def delete(self, key: str) -> bool:
        """Delete item from cache"""
        async with self._lock:
            self._access_order.pop(key, None)
            return self._cache.pop(key, None) is not None

    async def clear(self) -> None:
        """Clear all cache items"""
        async with self._lock:
            self._cache.clear()
            self._access_order.clear()

    async def close(self) -> None:
        await self.clear()

    def _evict_lru(self) -> None:
        """Evict least recently used item"""
        if not self._access_order:
            return

        lru_key = min(self._access_order.items(), key=lambda x: x[1])[0]
        self._cache.pop(lru_key, None)
        del self._access_order[lru_key]

    async def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics"""
        async with self._lock:
            now = time.monotonic()
            total_hits = sum(item.hits for item in self._cache.values())
            expired_count = sum(
                1 for item in self._cache.values() if now - item.created_at > item.ttl
            )

            return {
                "backend": "in_memory",
                "total_items": len(self._cache),
                "max_size": self._max_size,
                "total_hits": total_hits,
                "expired_items": expired_count,
            }


class RedisCacheService:
    """Redis-backed cache storing JSON values with SETEX"""

    def __init__(self, client: redis.Redis):
        self._client = client

    async def get(self, key: str) -> Optional[Any]:
        data = await self._client.get(key)
        return json.loads(data) if data else None

    async def set(self, key: str, data: Any, ttl: int = cache_config.DEFAULT_TTL) -> None:
        await self._client.setex(key, ttl, json.dumps(data, default=str))

    async def delete(self, key: str) -> bool:
        return bool(await self._client.delete(key))

    async def clear(self) -> None:
        keys = [key async for key in self._client.scan_iter(match="inventory:*")]
        if keys:
            await self._client.delete(*keys)

    async def close(self) -> None:
        # The shared client is closed by close_redis()
        return None

    async def get_stats(self) -> Dict[str, Any]:
        info = await self._client.info()
        return {
            "backend": "redis",
            "used_memory": info.get("used_memory_human", "unknown"),
            "keyspace_hits": info.get("keyspace_hits", 0),
            "keyspace_misses": info.get("keyspace_misses", 0),
        }
