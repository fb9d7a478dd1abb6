"""
Polling Subscription Hub

Every client view observes server state by periodic pull. The hub keeps one
poll task per key (``"orders"``, ``"menu"``, ``"order:<id>"``) no matter how
many views subscribe to it, so two widgets tracking the same order share a
single request per tick.

    hub = SubscriptionHub()
    sub = hub.subscribe("menu", api.get_menu, interval=10, callback=render)
    hub.bind_invalidation(InvalidationEvent.MENU_UPDATED, "menu")
    ...
    sub.unsubscribe()          # last subscriber leaves -> poll task cancelled
    await hub.close()

Failed polls are logged at DEBUG and retried on the next tick.

Version: 1.0.0
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from snappy_serve.core.exceptions import CafeError
from snappy_serve.services.invalidation import InvalidationBus, InvalidationEvent

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
Callback = Callable[[Any], Union[None, Awaitable[None]]]


class PollingSubscription:
    """Handle returned by ``SubscriptionHub.subscribe``."""

    def __init__(self, hub: "SubscriptionHub", key: str, callback: Callback):
        self.hub = hub
        self.key = key
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self.hub._remove(self)

    def refresh(self) -> None:
        self.hub.refresh(self.key)


class _PollLoop:
    def __init__(self, key: str, fetch: Fetcher, interval: float):
        self.key = key
        self.fetch = fetch
        self.interval = interval
        self.subscribers: list[PollingSubscription] = []
        self.wake = asyncio.Event()
        self.latest: Any = None
        self.stopped = False
        self.task: Optional[asyncio.Task] = None


class SubscriptionHub:
    """One shared poll loop per key, fanned out to every subscriber."""

    def __init__(self) -> None:
        self._loops: dict[str, _PollLoop] = {}
        self._bindings: dict[InvalidationEvent, set[str]] = {}
        self._detach: list[Callable[[], None]] = []

    @property
    def keys(self) -> list[str]:
        return list(self._loops)

    def latest(self, key: str) -> Any:
        """Last value fetched for ``key``, or None."""
        loop = self._loops.get(key)
        return loop.latest if loop else None

    def subscribe(
        self,
        key: str,
        fetch: Fetcher,
        interval: float,
        callback: Callback,
    ) -> PollingSubscription:
        """
        Subscribe ``callback`` to the values polled under ``key``.

        The first subscriber of a key sets its fetcher and interval and
        starts the poll task; later subscribers join it and trigger an
        immediate refetch. Must be called with a running event loop.
        """
        subscription = PollingSubscription(self, key, callback)
        loop = self._loops.get(key)
        if loop is None:
            loop = _PollLoop(key, fetch, interval)
            self._loops[key] = loop
            loop.task = asyncio.get_running_loop().create_task(self._run(loop))
            logger.debug(f"Polling {key} every {interval}s")
        else:
            loop.wake.set()
        loop.subscribers.append(subscription)
        return subscription

    def refresh(self, key: str) -> None:
        """Fetch ``key`` now instead of waiting for the next tick."""
        loop = self._loops.get(key)
        if loop is not None:
            loop.wake.set()

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    def bind_invalidation(self, event: InvalidationEvent, key: str) -> None:
        """Refetch ``key`` whenever ``event`` is seen."""
        self._bindings.setdefault(event, set()).add(key)

    def on_invalidation(self, event: InvalidationEvent, at: Optional[int] = None) -> None:
        for key in self._bindings.get(event, ()):
            self.refresh(key)

    def attach_bus(self, bus: InvalidationBus) -> Callable[[], None]:
        """Listen to a bus in the same process."""
        unsubscribe = bus.subscribe(self.on_invalidation)
        self._detach.append(unsubscribe)
        return unsubscribe

    def watch_markers(self, fetch_markers: Callable[[], Awaitable[dict[str, int]]], interval: float) -> PollingSubscription:
        """
        Follow invalidations of a remote server by polling its markers.

        Markers seen on the first fetch are the baseline; only later
        advances trigger refreshes.
        """
        seen: dict[str, int] = {}
        first = True

        def on_markers(markers: dict[str, int]) -> None:
            nonlocal first
            for name, at in markers.items():
                previous = seen.get(name)
                seen[name] = at
                if first or (previous is not None and at <= previous):
                    continue
                try:
                    event = InvalidationEvent(name)
                except ValueError:
                    continue
                self.on_invalidation(event, at)
            first = False

        return self.subscribe("invalidations", fetch_markers, interval, on_markers)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _remove(self, subscription: PollingSubscription) -> None:
        loop = self._loops.get(subscription.key)
        if loop is None or subscription not in loop.subscribers:
            return
        loop.subscribers.remove(subscription)
        if not loop.subscribers:
            self._stop(loop)

    def _stop(self, loop: _PollLoop) -> None:
        loop.stopped = True
        if self._loops.get(loop.key) is loop:
            del self._loops[loop.key]
        # A subscriber leaving from inside its own callback ends the loop on return
        if loop.task is not None and loop.task is not asyncio.current_task():
            loop.task.cancel()
        logger.debug(f"Stopped polling {loop.key}")

    async def close(self) -> None:
        """Cancel every poll task and detach from buses."""
        for detach in self._detach:
            detach()
        self._detach.clear()

        loops = list(self._loops.values())
        for loop in loops:
            for subscription in loop.subscribers:
                subscription.active = False
            self._stop(loop)
        tasks = [loop.task for loop in loops if loop.task is not None]
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _deliver(self, loop: _PollLoop, value: Any) -> None:
        for subscription in list(loop.subscribers):
            if not subscription.active:
                continue
            try:
                result = subscription.callback(value)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Subscriber of {loop.key} failed")

    async def _run(self, loop: _PollLoop) -> None:
        while not loop.stopped:
            loop.wake.clear()
            try:
                value = await loop.fetch()
            except (httpx.HTTPError, CafeError) as e:
                logger.debug(f"Poll of {loop.key} failed, retrying next tick: {e}")
            except Exception:
                # Bad payloads must not end the loop
                logger.exception(f"Poll of {loop.key} returned unusable data, retrying next tick")
            else:
                loop.latest = value
                await self._deliver(loop, value)

            if loop.stopped:
                break
            try:
                await asyncio.wait_for(loop.wake.wait(), timeout=loop.interval)
            except asyncio.TimeoutError:
                pass
