"""
Pydantic Schemas for Request/Response Validation

The wire format is camelCase (``tableNumber``, ``createdAt``); Python code
uses snake_case field names and the alias generator bridges the two.
Response models read straight from the domain dataclasses
(``from_attributes``).

Version: 1.0.0
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, NonNegativeInt, field_validator
from pydantic.alias_generators import to_camel

from snappy_serve.domain import OrderStatus
from snappy_serve.services.invalidation import InvalidationEvent

Number = Union[int, float]
NonNegativeNumber = Union[NonNegativeInt, NonNegativeFloat]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# ORDER SCHEMAS
# =============================================================================

class OrderItemSchema(CamelModel):
    """Single item in an order or bill."""
    id: Optional[str] = Field(None, examples=["tea-1"])
    name: str = Field(..., min_length=1, max_length=100, examples=["Masala Chai"])
    price: NonNegativeNumber = Field(0, examples=[30])
    quantity: int = Field(1, ge=1, le=99, examples=[2])


class OrderCreate(CamelModel):
    """
    Request schema for creating a new order.

    Any ``status`` sent by the client is ignored.
    """
    table_number: Optional[int] = Field(None, examples=[5])
    customer_name: Optional[str] = Field(None, max_length=100, examples=["Ann"])
    items: Optional[list[OrderItemSchema]] = None
    total_amount: Optional[NonNegativeNumber] = None


class OrderStatusUpdate(CamelModel):
    status: OrderStatus

    @field_validator("status", mode="before")
    @classmethod
    def upper_case_status(cls, v: Any) -> Any:
        """Accept ``ready`` as well as ``READY``."""
        return v.upper() if isinstance(v, str) else v


class OrderResponse(CamelModel):
    id: str
    table_number: Optional[int]
    customer_name: str
    items: list[OrderItemSchema]
    total_amount: Number
    status: OrderStatus
    created_at: int
    updated_at: Optional[int] = None
    version: int = 0


class OrderCreateResponse(CamelModel):
    success: bool = True
    order_id: str


class OrderUpdateResponse(CamelModel):
    success: bool = True
    order: OrderResponse


# =============================================================================
# BILL SCHEMAS
# =============================================================================

class BillCreate(CamelModel):
    """
    ``orderId`` bills a stored order (idempotent, completes the order).
    Without it the given items are billed ad hoc.
    """
    order_id: Optional[str] = None
    table_number: Optional[int] = None
    customer_name: Optional[str] = None
    items: Optional[list[OrderItemSchema]] = None


class BillResponse(CamelModel):
    id: str
    order_id: Optional[str]
    table_number: Optional[int]
    customer_name: str
    items: list[OrderItemSchema]
    subtotal: Number
    tax: int
    service: int
    total: Number
    created_at: int


class BillCreateResponse(CamelModel):
    success: bool = True
    bill: BillResponse
    created: bool


# =============================================================================
# MENU SCHEMAS
# =============================================================================

class MenuItemSchema(CamelModel):
    id: str
    name: str
    category: str
    price: Number
    available: bool = True
    description: Optional[str] = None
    image: Optional[str] = None


class MenuItemCreate(CamelModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=50)
    price: NonNegativeNumber
    available: bool = True
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = None


class MenuItemUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    price: Optional[NonNegativeNumber] = None
    available: Optional[bool] = None
    description: Optional[str] = Field(None, max_length=500)
    image: Optional[str] = None


class MenuItemResponse(CamelModel):
    success: bool = True
    item: MenuItemSchema


class SeedMenuResponse(CamelModel):
    success: bool = True
    inserted: int


# =============================================================================
# REPORT SCHEMAS
# =============================================================================

class TopItemSchema(CamelModel):
    name: str
    quantity: int
    revenue: Number


class HourlyBucketSchema(CamelModel):
    hour: str
    orders: int
    revenue: Number


class DailyReportResponse(CamelModel):
    date: str
    total_orders: int
    total_revenue: Number
    average_order_value: float
    total_customers: int
    top_items: list[TopItemSchema]
    hourly_breakdown: list[HourlyBucketSchema]


# =============================================================================
# INVALIDATION SCHEMAS
# =============================================================================

class InvalidationPublish(CamelModel):
    event: InvalidationEvent


class InvalidationPublishResponse(CamelModel):
    success: bool = True
    event: InvalidationEvent
    at: int


# =============================================================================
# COMMON
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[Any] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    environment: str
    orders: int
    bills: int
    mirror: str
    invalidation_bus: str
    timestamp: str
