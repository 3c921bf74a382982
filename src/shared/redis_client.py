"""
Redis client shared by the availability cache and the pub/sub broadcaster.

Returns None when REDIS_URL is not configured so callers can fall back to
in-process implementations.
"""
from typing import Optional

import redis.asyncio as redis

from src.config.settings import settings
from src.shared.utils import get_logger

logger = get_logger(__name__)

# Global Redis client (initialized lazily)
_redis_client: Optional[redis.Redis] = None


async def get_redis(url: Optional[str] = None) -> Optional[redis.Redis]:
    """Get Redis client, initializing if needed.

    Returns None if no URL is configured or the server is unreachable.
    """
    global _redis_client

    redis_url = url if url is not None else settings.REDIS_URL
    if not redis_url:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            await _redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning(f"Redis connection failed: {e}. Falling back to in-memory.")
            _redis_client = None

    return _redis_client


async def close_redis():
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
