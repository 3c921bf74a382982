"""
Cache configuration settings
Centralized cache TTL values and settings for the availability cache
"""

import os
from typing import Dict, Any


class CacheConfig:
    """Cache configuration with environment variable overrides"""

    # Default TTL values in seconds
    DEFAULT_TTL = int(os.getenv("CACHE_DEFAULT_TTL", "300"))  # 5 minutes

    # Availability is hot and short-lived; writes invalidate explicitly
    AVAILABILITY_TTL = int(os.getenv("CACHE_AVAILABILITY_TTL", "60"))  # 1 minute

    # In-memory backend limits
    MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "10000"))

    # Cache prefixes for organization
    PREFIXES = {
        "availability": "inventory:availability",
    }

    @classmethod
    def get_ttl(cls, cache_type: str) -> int:
        """Get TTL for specific cache type"""
        ttl_mapping = {
            "availability": cls.AVAILABILITY_TTL,
            "default": cls.DEFAULT_TTL,
        }
        return ttl_mapping.get(cache_type, cls.DEFAULT_TTL)

    @classmethod
    def get_all_settings(cls) -> Dict[str, Any]:
        """Get all cache settings for debugging/monitoring"""
        return {
            "ttl_settings": {
                "default": cls.DEFAULT_TTL,
                "availability": cls.AVAILABILITY_TTL,
            },
            "max_entries": cls.MAX_ENTRIES,
            "prefixes": dict(cls.PREFIXES),
        }


# Global cache config instance
cache_config = CacheConfig()
