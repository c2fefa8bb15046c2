"""Cache invalidation for the public job listing cache.

The listing API caches responses in Redis under the "jobs:" prefix. The
pipeline never reads that cache; it only drops every key under the prefix
after writes so readers do not see stale listings.
"""

import logging
from typing import Protocol

import redis

from unjobs.config import get_settings

logger = logging.getLogger(__name__)


class Invalidator(Protocol):
    def invalidate(self, prefix: str) -> int:
        """Remove every key under prefix, returning how many were removed."""
        ...


class RedisInvalidator:
    def __init__(self, redis_url: str | None = None, client: redis.Redis | None = None):
        self.client = client or redis.from_url(redis_url or get_settings().redis_url)

    def invalidate(self, prefix: str) -> int:
        keys = list(self.client.scan_iter(match=f"{prefix}*", count=500))
        if not keys:
            return 0
        removed = self.client.delete(*keys)
        logger.info(f"Invalidated {removed} cache keys under '{prefix}'")
        return removed


class NullInvalidator:
    def invalidate(self, prefix: str) -> int:
        return 0


def invalidate_quietly(invalidator: Invalidator, prefix: str) -> int | None:
    """Best-effort invalidation; returns None if the cache was unreachable."""
    try:
        return invalidator.invalidate(prefix)
    except Exception as e:
        logger.warning(f"Cache invalidation for '{prefix}' failed: {e}")
        return None
