"""
Customer App Client

Places orders, follows their status and browses the menu, all by polling.

Status changes of a tracked order raise local notifications:
    PREPARING -> "Order Accepted!"
    READY     -> "Order Ready!" (stays until dismissed)
    any change -> status toast
Tracking stops once the order is COMPLETED.
"""

import logging
from typing import Any, Callable, Iterable, Optional

from snappy_serve.clients.api import CafeApiClient
from snappy_serve.clients.notifications import BaseNotifier, LoggingNotifier, Notification
from snappy_serve.clients.polling import PollingSubscription, SubscriptionHub
from snappy_serve.core.config import get_settings
from snappy_serve.domain import OrderStatus
from snappy_serve.schemas import MenuItemSchema, OrderResponse
from snappy_serve.services.invalidation import InvalidationEvent

logger = logging.getLogger(__name__)

MENU_KEY = "menu"


def order_key(order_id: str) -> str:
    return f"order:{order_id}"


def status_notifications(order_id: str, status: OrderStatus) -> list[Notification]:
    """Notifications shown when an order enters ``status``."""
    notes = [Notification(
        title=f"Order status: {status.value.replace('_', ' ')}",
        toast=True,
    )]
    if status == OrderStatus.PREPARING:
        notes.append(Notification(
            title="Order Accepted! 👨‍🍳",
            body=f"Your order #{order_id} is being prepared",
            tag="order-preparing",
        ))
    elif status == OrderStatus.READY:
        notes.append(Notification(
            title="Order Ready! ✅",
            body=f"Your order #{order_id} is ready for pickup",
            tag="order-ready",
            require_interaction=True,
        ))
    return notes


class CustomerClient:
    """
    Customer view over the ordering API.

    Attributes:
        statuses: Last known status per tracked order
        menu: Last polled menu, grouped by category
    """

    def __init__(
        self,
        api: CafeApiClient,
        hub: SubscriptionHub,
        notifier: Optional[BaseNotifier] = None,
        order_poll_seconds: Optional[float] = None,
        menu_poll_seconds: Optional[float] = None,
        active_orders_poll_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.api = api
        self.hub = hub
        self.notifier = notifier or LoggingNotifier()
        self.order_poll_seconds = order_poll_seconds or settings.order_poll_seconds
        self.menu_poll_seconds = menu_poll_seconds or settings.menu_poll_seconds
        self.active_orders_poll_seconds = (
            active_orders_poll_seconds or settings.active_orders_poll_seconds
        )
        self.statuses: dict[str, OrderStatus] = {}
        self.menu: dict[str, list[MenuItemSchema]] = {}
        self._subscriptions: list[PollingSubscription] = []

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    async def place_order(
        self,
        items: list[dict[str, Any]],
        table_number: int,
        customer_name: str,
        on_update: Optional[Callable[[OrderResponse], None]] = None,
    ) -> str:
        """Place an order and start tracking it."""
        total = sum(item.get("price", 0) * item.get("quantity", 1) for item in items)
        order_id = await self.api.create_order(
            items, table_number=table_number, customer_name=customer_name, total_amount=total,
        )
        logger.info(f"Placed order {order_id} for {customer_name} at table {table_number}")
        self.track_order(order_id, on_update=on_update, known_status=OrderStatus.PENDING)
        return order_id

    async def request_bill(self, order_id: str) -> OrderResponse:
        order = await self.api.update_status(order_id, OrderStatus.BILL_REQUESTED)
        self.hub.refresh(order_key(order_id))
        return order

    def track_order(
        self,
        order_id: str,
        on_update: Optional[Callable[[OrderResponse], None]] = None,
        known_status: Optional[OrderStatus] = None,
        interval: Optional[float] = None,
    ) -> PollingSubscription:
        """
        Follow one order until it completes.

        ``known_status`` is the status the caller already shows; the first
        poll only notifies if the server reports something else.
        """
        if known_status is not None:
            self.statuses[order_id] = known_status

        subscription: Optional[PollingSubscription] = None

        def on_order(order: OrderResponse) -> None:
            self._observe(order)
            if on_update is not None:
                on_update(order)
            if order.status == OrderStatus.COMPLETED and subscription is not None:
                subscription.unsubscribe()
                self.statuses.pop(order_id, None)

        subscription = self.hub.subscribe(
            order_key(order_id),
            lambda: self.api.get_order(order_id),
            interval or self.order_poll_seconds,
            on_order,
        )
        self._subscriptions.append(subscription)
        return subscription

    def track_active_orders(
        self,
        order_ids: Iterable[str],
        on_update: Optional[Callable[[OrderResponse], None]] = None,
    ) -> list[PollingSubscription]:
        """Follow previously placed orders on the slower cadence."""
        return [
            self.track_order(order_id, on_update=on_update, interval=self.active_orders_poll_seconds)
            for order_id in order_ids
        ]

    def _observe(self, order: OrderResponse) -> None:
        previous = self.statuses.get(order.id)
        self.statuses[order.id] = order.status
        if previous is None or previous == order.status:
            return
        logger.info(f"Order {order.id}: {previous.value} -> {order.status.value}")
        for note in status_notifications(order.id, order.status):
            self.notifier.notify(note)

    # -------------------------------------------------------------------------
    # Menu
    # -------------------------------------------------------------------------

    def browse_menu(
        self,
        on_menu: Optional[Callable[[dict[str, list[MenuItemSchema]]], None]] = None,
    ) -> PollingSubscription:
        """Poll the menu while browsing; ``menu-updated`` forces a refetch."""
        def on_fetch(menu: dict[str, list[MenuItemSchema]]) -> None:
            self.menu = menu
            if on_menu is not None:
                on_menu(menu)

        self.hub.bind_invalidation(InvalidationEvent.MENU_UPDATED, MENU_KEY)
        subscription = self.hub.subscribe(MENU_KEY, self.api.get_menu, self.menu_poll_seconds, on_fetch)
        self._subscriptions.append(subscription)
        return subscription

    def stop(self) -> None:
        """Drop every subscription this client holds."""
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
