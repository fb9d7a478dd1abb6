"""
Kitchen Dashboard Client

Polls the full order list, keeps it in attention order (BILL_REQUESTED
first, then oldest first) and drives orders forward through the API.
"""

import logging
from typing import Callable, Optional

from snappy_serve.clients.api import CafeApiClient
from snappy_serve.clients.polling import PollingSubscription, SubscriptionHub
from snappy_serve.core.config import get_settings
from snappy_serve.domain import OrderStatus, prioritize_orders
from snappy_serve.schemas import BillCreateResponse, OrderResponse
from snappy_serve.services.invalidation import InvalidationEvent

logger = logging.getLogger(__name__)

ORDERS_KEY = "orders"

# Kitchen button per status; BILL_REQUESTED is settled with generate_bill
NEXT_STATUS = {
    OrderStatus.PENDING: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.COMPLETED,
}


class KitchenClient:
    """
    Kitchen view over the ordering API.

    Attributes:
        orders: Last polled snapshot, replaced wholesale on every poll
    """

    def __init__(
        self,
        api: CafeApiClient,
        hub: SubscriptionHub,
        poll_seconds: Optional[float] = None,
        on_orders: Optional[Callable[[list[OrderResponse]], None]] = None,
    ):
        self.api = api
        self.hub = hub
        self.poll_seconds = poll_seconds or get_settings().kitchen_poll_seconds
        self.on_orders = on_orders
        self.orders: list[OrderResponse] = []
        self._subscription: Optional[PollingSubscription] = None

    def start(self) -> PollingSubscription:
        if self._subscription is None or not self._subscription.active:
            self._subscription = self.hub.subscribe(
                ORDERS_KEY, self.api.list_orders, self.poll_seconds, self._on_orders
            )
        return self._subscription

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_orders(self, orders: list[OrderResponse]) -> None:
        self.orders = orders
        if self.on_orders is not None:
            self.on_orders(self.queue)

    @property
    def queue(self) -> list[OrderResponse]:
        """Active orders in attention order."""
        return prioritize_orders(o for o in self.orders if o.status != OrderStatus.COMPLETED)

    async def advance(self, order_id: str, current: OrderStatus) -> OrderResponse:
        """Press the next-step button for an order in ``current``."""
        target = NEXT_STATUS.get(current)
        if target is None:
            raise ValueError(f"No kitchen step from {current.value}")
        order = await self.api.update_status(order_id, target)
        logger.info(f"Kitchen moved {order_id} to {order.status.value}")
        self.hub.refresh(ORDERS_KEY)
        return order

    async def generate_bill(self, order_id: str) -> BillCreateResponse:
        result = await self.api.generate_bill(order_id)
        self.hub.refresh(ORDERS_KEY)
        return result

    async def refresh(self) -> None:
        """Refetch orders now and tell report views to refetch too."""
        self.hub.refresh(ORDERS_KEY)
        await self.api.publish_invalidation(InvalidationEvent.REPORTS_UPDATED)
