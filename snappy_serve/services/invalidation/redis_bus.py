"""
Redis Invalidation Bus

Fans invalidation events out over a Redis pub/sub channel, so every API
process and every polling client connected to the same Redis sees them.

Publishing only sends; local subscribers are notified when the message comes
back through the subscription, exactly like remote ones.

Version: 1.0.0
"""

import asyncio
import json
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from snappy_serve.domain import now_ms
from snappy_serve.services.invalidation.base import InvalidationBus, InvalidationEvent

logger = logging.getLogger(__name__)


def encode_message(event: InvalidationEvent, at: int) -> str:
    return json.dumps({"event": event.value, "at": at})


def decode_message(data: str) -> Optional[tuple[InvalidationEvent, int]]:
    """Parse a channel message; ``None`` for anything malformed."""
    try:
        payload = json.loads(data)
        return InvalidationEvent(payload["event"]), int(payload["at"])
    except (ValueError, KeyError, TypeError):
        return None


class RedisInvalidationBus(InvalidationBus):
    """
    Invalidation bus over ``redis.asyncio`` pub/sub.

    A dropped subscription is reopened after ``reconnect_delay`` seconds;
    ``health_check`` reports unhealthy while the listener is down.
    """

    def __init__(self, redis_url: str, channel: str, reconnect_delay: float = 1.0):
        super().__init__()
        self.channel = channel
        self.reconnect_delay = reconnect_delay
        self._client = redis.from_url(redis_url, decode_responses=True)
        self._pubsub = None
        self._listener: Optional[asyncio.Task] = None
        self._listening = False

    @property
    def provider_name(self) -> str:
        return "redis"

    @property
    def listening(self) -> bool:
        return self._listening

    async def publish(self, event: InvalidationEvent) -> int:
        at = now_ms()
        self._record(event, at)
        try:
            await self._client.publish(self.channel, encode_message(event, at))
        except RedisError as e:
            logger.warning(f"Failed to publish {event.value}: {e}")
        return at

    async def start(self) -> None:
        if self._listener is not None:
            return
        await self._open()
        self._listener = asyncio.create_task(self._listen())
        logger.info(f"Listening for invalidations on {self.channel}")

    async def _open(self) -> None:
        self._pubsub = self._client.pubsub()
        await self._pubsub.subscribe(self.channel)
        self._listening = True

    async def _drop(self) -> None:
        self._listening = False
        if self._pubsub is None:
            return
        try:
            await self._pubsub.aclose()
        except RedisError as e:
            logger.debug(f"Closing dropped subscription failed: {e}")
        self._pubsub = None

    async def _listen(self) -> None:
        while True:
            try:
                if self._pubsub is None:
                    await self._open()
                    logger.info(f"Invalidation listener reconnected to {self.channel}")
                async for message in self._pubsub.listen():
                    if message["type"] != "message":
                        continue
                    decoded = decode_message(message["data"])
                    if decoded is None:
                        logger.warning(f"Ignoring malformed invalidation: {message['data']!r}")
                        continue
                    await self._dispatch(*decoded)
            except RedisError as e:
                logger.error(f"Invalidation listener lost Redis, retrying in {self.reconnect_delay}s: {e}")
            await self._drop()
            await asyncio.sleep(self.reconnect_delay)

    async def health_check(self) -> bool:
        if self._listener is not None and not self._listening:
            logger.error("Redis invalidation listener is down")
            return False
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self.channel)
            await self._pubsub.aclose()
            self._pubsub = None
        self._listening = False
        await self._client.aclose()
