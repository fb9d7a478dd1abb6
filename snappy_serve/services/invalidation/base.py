"""
Invalidation Bus Abstract Base Class

A lightweight broadcast telling other views that something they display is
stale, so they refetch before their next poll tick. Events carry no payload
beyond their type and publish time; subscribers refetch what they need.

Two implementations:
    - InMemoryInvalidationBus: single process (development, tests)
    - RedisInvalidationBus: every process subscribed to the same channel

Version: 1.0.0
"""

import inspect
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)


class InvalidationEvent(str, Enum):
    """Typed invalidation events."""
    MENU_UPDATED = "menu-updated"
    REPORTS_UPDATED = "reports-updated"


Subscriber = Callable[[InvalidationEvent, int], Union[None, Awaitable[None]]]


class InvalidationBus(ABC):
    """Publish/subscribe over a shared broadcast channel."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._markers: dict[InvalidationEvent, int] = {}

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def publish(self, event: InvalidationEvent) -> int:
        """
        Broadcast ``event``.

        Returns:
            int: Publish time in epoch milliseconds
        """
        pass

    async def start(self) -> None:
        """Begin receiving remote events. No-op for local buses."""

    async def close(self) -> None:
        """Stop receiving and release connections."""

    async def health_check(self) -> bool:
        return True

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register ``callback(event, at)``.

        Returns:
            Callable that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def markers(self) -> dict[str, int]:
        """Latest publish time seen per event type."""
        return {event.value: at for event, at in self._markers.items()}

    def _record(self, event: InvalidationEvent, at: int) -> None:
        if at > self._markers.get(event, 0):
            self._markers[event] = at

    async def _dispatch(self, event: InvalidationEvent, at: int) -> None:
        self._record(event, at)
        for callback in list(self._subscribers):
            try:
                result: Optional[Any] = callback(event, at)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Invalidation subscriber failed for {event.value}")
