"""
Domain Entities

Orders, bills and their lifecycle states. These are plain dataclasses owned by
the repositories; the API layer converts them to camelCase JSON through the
schemas in ``snappy_serve.schemas``, and the mirror stores the same camelCase
shape through ``to_document``.

Version: 1.0.0
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Optional, Union

Number = Union[int, float]


class OrderStatus(str, Enum):
    """Order status workflow."""
    PENDING = "PENDING"
    PREPARING = "PREPARING"
    READY = "READY"
    BILL_REQUESTED = "BILL_REQUESTED"
    COMPLETED = "COMPLETED"


TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.PREPARING,),
    OrderStatus.PREPARING: (OrderStatus.READY,),
    OrderStatus.READY: (OrderStatus.BILL_REQUESTED, OrderStatus.COMPLETED),
    OrderStatus.BILL_REQUESTED: (OrderStatus.COMPLETED,),
    OrderStatus.COMPLETED: (),
}

# Statuses from which the kitchen may generate a bill.
BILLABLE_STATUSES = (OrderStatus.READY, OrderStatus.BILL_REQUESTED)


def can_transition(src: OrderStatus, dst: OrderStatus) -> bool:
    """Return ``True`` if an order can move from ``src`` to ``dst``."""
    return dst in TRANSITIONS.get(src, ())


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def new_order_id() -> str:
    return f"ORD-{uuid.uuid4().hex[:12].upper()}"


def new_bill_id() -> str:
    return f"BILL-{uuid.uuid4().hex[:12].upper()}"


# =============================================================================
# ORDER
# =============================================================================

@dataclass(frozen=True)
class OrderItem:
    """Single line of an order or bill."""
    name: str
    price: Number = 0
    quantity: int = 1
    id: Optional[str] = None

    @property
    def line_total(self) -> Number:
        return self.price * self.quantity

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "quantity": self.quantity,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "OrderItem":
        return cls(
            id=doc.get("id"),
            name=doc["name"],
            price=doc.get("price", 0),
            quantity=doc.get("quantity", 1),
        )


@dataclass
class Order:
    """
    A customer's placed request, tracked through the status lifecycle.

    ``id`` and ``created_at`` never change after creation. ``version`` and
    ``updated_at`` are maintained by the order repository on every committed
    mutation.
    """
    id: str
    items: list[OrderItem]
    total_amount: Number
    table_number: Optional[int] = None
    customer_name: str = "Guest"
    status: OrderStatus = OrderStatus.PENDING
    created_at: int = field(default_factory=now_ms)
    updated_at: Optional[int] = None
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status != OrderStatus.COMPLETED

    def copy(self) -> "Order":
        return replace(self, items=list(self.items))

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tableNumber": self.table_number,
            "customerName": self.customer_name,
            "items": [item.to_document() for item in self.items],
            "totalAmount": self.total_amount,
            "status": self.status.value,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "version": self.version,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Order":
        return cls(
            id=doc["id"],
            table_number=doc.get("tableNumber"),
            customer_name=doc.get("customerName") or "Guest",
            items=[OrderItem.from_document(i) for i in doc.get("items", [])],
            total_amount=doc.get("totalAmount", 0),
            status=OrderStatus(doc.get("status", OrderStatus.PENDING.value)),
            created_at=doc.get("createdAt") or now_ms(),
            updated_at=doc.get("updatedAt"),
            version=doc.get("version", 0),
        )


def prioritize_orders(orders: Iterable[Order]) -> list[Order]:
    """
    Kitchen attention order.

    Every BILL_REQUESTED order comes first; within each group, oldest first.
    """
    return sorted(
        orders,
        key=lambda o: (o.status != OrderStatus.BILL_REQUESTED, o.created_at),
    )


# =============================================================================
# BILL
# =============================================================================

@dataclass(frozen=True)
class Bill:
    """Immutable financial summary of an order's items at billing time."""
    id: str
    items: tuple[OrderItem, ...]
    subtotal: Number
    tax: int
    service: int
    total: Number
    order_id: Optional[str] = None
    table_number: Optional[int] = None
    customer_name: str = "Guest"
    created_at: int = field(default_factory=now_ms)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "tableNumber": self.table_number,
            "customerName": self.customer_name,
            "items": [item.to_document() for item in self.items],
            "subtotal": self.subtotal,
            "tax": self.tax,
            "service": self.service,
            "total": self.total,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Bill":
        return cls(
            id=doc["id"],
            order_id=doc.get("orderId"),
            table_number=doc.get("tableNumber"),
            customer_name=doc.get("customerName") or "Guest",
            items=tuple(OrderItem.from_document(i) for i in doc.get("items", [])),
            subtotal=doc["subtotal"],
            tax=doc["tax"],
            service=doc["service"],
            total=doc["total"],
            created_at=doc.get("createdAt") or now_ms(),
        )
