"""
In-Memory Invalidation Bus

Delivers events to subscribers of the same process. Used in development and
tests, where the customer and kitchen clients share one event loop.
"""

import logging

from snappy_serve.domain import now_ms
from snappy_serve.services.invalidation.base import InvalidationBus, InvalidationEvent

logger = logging.getLogger(__name__)


class InMemoryInvalidationBus(InvalidationBus):

    @property
    def provider_name(self) -> str:
        return "memory"

    async def publish(self, event: InvalidationEvent) -> int:
        at = now_ms()
        logger.debug(f"Invalidation {event.value} at {at}")
        await self._dispatch(event, at)
        return at
