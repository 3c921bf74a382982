"""
Read-through cache for derived availability (total - active reservations).

Never the system of record: writers invalidate (delete) entries, and any
backend failure degrades to a cache miss.
"""
from typing import Any, Optional

from src.api.inventory.models import AvailabilitySchema
from src.config.cache_config import cache_config
from src.shared.utils import get_logger

logger = get_logger(__name__)


class AvailabilityCache:
    """Availability-specific cache operations over a CacheService backend"""

    def __init__(self, backend: Any, ttl_seconds: Optional[int] = None):
        self.backend = backend
        self.ttl_seconds = ttl_seconds or cache_config.get_ttl("availability")
        self.prefix = cache_config.PREFIXES["availability"]

    def key(self, product_id: str, variant_id: Optional[str] = None) -> str:
        return f"{self.prefix}:{product_id}:{variant_id or '-'}"

    async def get(
        self, product_id: str, variant_id: Optional[str] = None
    ) -> Optional[AvailabilitySchema]:
        try:
            cached = await self.backend.get(self.key(product_id, variant_id))
        except Exception as e:
            logger.warning(f"Availability cache read failed for {product_id}: {e}")
            return None

        if cached is None:
            return None
        return AvailabilitySchema.model_validate(cached)

    async def set(self, availability: AvailabilitySchema) -> None:
        try:
            await self.backend.set(
                self.key(availability.product_id, availability.variant_id),
                availability.model_dump(mode="json"),
                self.ttl_seconds,
            )
        except Exception as e:
            logger.warning(
                f"Availability cache write failed for {availability.product_id}: {e}"
            )

    async def invalidate(self, product_id: str, variant_id: Optional[str] = None) -> None:
        try:
            await self.backend.delete(self.key(product_id, variant_id))
        except Exception as e:
            # TTL bounds the staleness when a delete is lost
            logger.warning(f"Availability cache invalidation failed for {product_id}: {e}")
