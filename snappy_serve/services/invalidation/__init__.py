"""
Invalidation Bus Factory

Returns the in-memory bus in development and the Redis bus otherwise.
"""

import logging
from functools import lru_cache

from snappy_serve.core.config import get_settings
from snappy_serve.services.invalidation.base import InvalidationBus, InvalidationEvent
from snappy_serve.services.invalidation.memory import InMemoryInvalidationBus
from snappy_serve.services.invalidation.redis_bus import RedisInvalidationBus

logger = logging.getLogger(__name__)


@lru_cache()
def get_invalidation_bus() -> InvalidationBus:
    """Get the configured invalidation bus."""
    settings = get_settings()

    if settings.use_redis:
        logger.info(f"Invalidation Bus: Using RedisInvalidationBus ({settings.env_mode.value} mode)")
        return RedisInvalidationBus(settings.redis_url, settings.invalidation_channel)
    logger.info("Invalidation Bus: Using InMemoryInvalidationBus (development mode)")
    return InMemoryInvalidationBus()


def reset_invalidation_bus() -> None:
    """Clear the cached bus instance."""
    get_invalidation_bus.cache_clear()


__all__ = [
    "get_invalidation_bus",
    "reset_invalidation_bus",
    "InvalidationBus",
    "InvalidationEvent",
    "InMemoryInvalidationBus",
    "RedisInvalidationBus",
]
