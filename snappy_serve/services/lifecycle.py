"""
Order Lifecycle Engine

The only writer of ``Order.status``. Enforces the transition table in
``snappy_serve.domain`` and owns bill generation, which completes the order
as a side effect.

Workflow:
    PENDING -> PREPARING -> READY -> COMPLETED
                              \\-> BILL_REQUESTED -> COMPLETED

Every read-check-write runs inside ``OrderRepository.mutate``, so two
concurrent requests for the same order are serialized: of two simultaneous
bill generations, the second one finds the first bill and returns it.

Version: 1.0.0
"""

import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional, Sequence, Union

from snappy_serve.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from snappy_serve.domain import (
    BILLABLE_STATUSES,
    Bill,
    Order,
    OrderItem,
    OrderStatus,
    can_transition,
    new_bill_id,
    new_order_id,
    now_ms,
    prioritize_orders,
)
from snappy_serve.services.billing import DEFAULT_SERVICE_RATE, DEFAULT_TAX_RATE, compute_bill
from snappy_serve.services.storage.base import BillRepository, OrderRepository

logger = logging.getLogger(__name__)

ItemInput = Union[OrderItem, Mapping]


# =============================================================================
# INPUT COERCION
# =============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def coerce_items(items: Any) -> list[OrderItem]:
    """
    Validate raw order lines.

    Accepts ``OrderItem`` instances or mappings with ``name``, ``price`` and
    ``quantity`` (defaults 0 and 1).

    Raises:
        ValidationError: Missing, empty or malformed items
    """
    if items is None:
        raise ValidationError("No items in order")
    if not isinstance(items, (list, tuple)):
        raise ValidationError("Items must be a list")
    if not items:
        raise ValidationError("No items in order")

    result = []
    for index, raw in enumerate(items):
        if isinstance(raw, OrderItem):
            item = raw
        elif isinstance(raw, Mapping):
            name = raw.get("name")
            if not isinstance(name, str) or not name.strip():
                raise ValidationError(f"Item {index} has no name")
            item = OrderItem(
                id=raw.get("id"),
                name=name,
                price=raw.get("price", 0),
                quantity=raw.get("quantity", 1),
            )
        else:
            raise ValidationError(f"Item {index} is not an object")

        if not _is_number(item.price) or item.price < 0:
            raise ValidationError(f"Item {index} has an invalid price")
        if not isinstance(item.quantity, int) or isinstance(item.quantity, bool) or item.quantity < 1:
            raise ValidationError(f"Item {index} must have a quantity of at least 1")
        result.append(item)
    return result


def parse_status(value: Union[OrderStatus, str]) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).upper())
    except ValueError:
        valid = [s.value for s in OrderStatus]
        raise ValidationError(f"Invalid status {value!r}. Options: {valid}")


# =============================================================================
# ENGINE
# =============================================================================

class OrderLifecycleEngine:
    """
    Order creation, status transitions and bill generation.

    Attributes:
        orders: Order store
        bills: Bill store
        tax_rate: Tax applied to bill subtotals
        service_rate: Service charge applied to bill subtotals
        max_table_number: Highest accepted table number
    """

    def __init__(
        self,
        orders: OrderRepository,
        bills: BillRepository,
        tax_rate: float = DEFAULT_TAX_RATE,
        service_rate: float = DEFAULT_SERVICE_RATE,
        max_table_number: int = 40,
        clock: Callable[[], int] = now_ms,
    ):
        self.orders = orders
        self.bills = bills
        self.tax_rate = tax_rate
        self.service_rate = service_rate
        self.max_table_number = max_table_number
        self._clock = clock

    def _check_table(self, table_number: Optional[int]) -> None:
        if table_number is None:
            return
        if not 1 <= table_number <= self.max_table_number:
            raise ValidationError(
                f"Table number must be between 1 and {self.max_table_number}"
            )

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    async def create_order(
        self,
        items: Any,
        table_number: Optional[int] = None,
        customer_name: Optional[str] = None,
        total_amount: Optional[float] = None,
    ) -> Order:
        """
        Place a new order.

        The status is always PENDING and the id and timestamp are assigned
        here, whatever the client sent.

        Raises:
            ValidationError: Missing/empty items or out-of-range table
        """
        lines = coerce_items(items)
        self._check_table(table_number)

        if total_amount is None:
            total_amount = sum(item.line_total for item in lines)

        order = Order(
            id=new_order_id(),
            items=lines,
            total_amount=total_amount,
            table_number=table_number,
            customer_name=customer_name or "Guest",
            status=OrderStatus.PENDING,
            created_at=self._clock(),
        )
        stored = await self.orders.add(order)
        logger.info(
            f"Order {stored.id} placed: table={stored.table_number} "
            f"items={len(lines)} total={stored.total_amount}"
        )
        return stored

    async def get_order(self, order_id: str) -> Order:
        order = await self.orders.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    async def list_orders(self) -> list[Order]:
        return await self.orders.list_all()

    async def kitchen_queue(self) -> list[Order]:
        """Active orders in the order the kitchen should attend to them."""
        return prioritize_orders(o for o in await self.orders.list_all() if o.is_active)

    async def transition(self, order_id: str, new_status: Union[OrderStatus, str]) -> Order:
        """
        Move an order to ``new_status``.

        Raises:
            NotFoundError: Unknown order
            ValidationError: ``new_status`` is not a lifecycle state
            InvalidTransitionError: ``new_status`` is not a legal successor
        """
        target = parse_status(new_status)

        async with self.orders.mutate(order_id) as order:
            previous = order.status
            if not can_transition(previous, target):
                logger.warning(
                    f"Rejected transition for order {order_id}: {previous.value} -> {target.value}"
                )
                raise InvalidTransitionError(order_id, previous.value, target.value)
            order.status = target

        logger.info(f"Order {order_id}: {previous.value} -> {target.value}")
        return order.copy()

    async def request_bill(self, order_id: str) -> Order:
        """Customer asks for the bill on a READY order."""
        return await self.transition(order_id, OrderStatus.BILL_REQUESTED)

    # -------------------------------------------------------------------------
    # Bills
    # -------------------------------------------------------------------------

    def _build_bill(
        self,
        items: Sequence[OrderItem],
        table_number: Optional[int],
        customer_name: Optional[str],
        order_id: Optional[str] = None,
    ) -> Bill:
        totals = compute_bill(items, tax_rate=self.tax_rate, service_rate=self.service_rate)
        return Bill(
            id=new_bill_id(),
            order_id=order_id,
            table_number=table_number,
            customer_name=customer_name or "Guest",
            items=tuple(items),
            subtotal=totals.subtotal,
            tax=totals.tax,
            service=totals.service,
            total=totals.total,
            created_at=self._clock(),
        )

    async def generate_bill(self, order_id: str) -> tuple[Bill, bool]:
        """
        Bill an order and complete it.

        Idempotent per order: when a bill already exists for ``order_id`` it
        is returned unchanged.

        Returns:
            tuple: (bill, created) where ``created`` is False on a repeat call

        Raises:
            NotFoundError: Unknown order, or completed without a bill
            InvalidTransitionError: Order has not reached READY yet
        """
        async with self.orders.mutate(order_id) as order:
            existing = await self.bills.get_for_order(order_id)
            if existing is not None:
                logger.info(f"Order {order_id} already billed as {existing.id}")
                return existing, False

            if order.status == OrderStatus.COMPLETED:
                raise NotFoundError(f"Order {order_id} is already completed")
            if order.status not in BILLABLE_STATUSES:
                raise InvalidTransitionError(
                    order_id, order.status.value, OrderStatus.COMPLETED.value
                )

            bill = self._build_bill(
                order.items,
                table_number=order.table_number,
                customer_name=order.customer_name,
                order_id=order.id,
            )
            await self.bills.add(bill)
            order.status = OrderStatus.COMPLETED

        logger.info(f"Bill {bill.id} generated for order {order_id}: total={bill.total}")
        return bill, True

    async def create_ad_hoc_bill(
        self,
        items: Any,
        table_number: Optional[int] = None,
        customer_name: Optional[str] = None,
    ) -> Bill:
        """Bill a list of items that is not tied to a stored order."""
        lines = coerce_items(items)
        self._check_table(table_number)
        bill = await self.bills.add(self._build_bill(lines, table_number, customer_name))
        logger.info(f"Ad-hoc bill {bill.id} generated: total={bill.total}")
        return bill

    async def get_bill(self, bill_id: str) -> Bill:
        bill = await self.bills.get(bill_id)
        if bill is None:
            raise NotFoundError(f"Bill {bill_id} not found")
        return bill

    async def list_bills(self) -> list[Bill]:
        return await self.bills.list_all()
