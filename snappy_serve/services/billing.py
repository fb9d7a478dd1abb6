"""
Bill computation.

Pure functions only; persistence of the resulting ``Bill`` is the lifecycle
engine's job.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Union

from snappy_serve.domain import OrderItem

Number = Union[int, float]

DEFAULT_TAX_RATE = 0.05
DEFAULT_SERVICE_RATE = 0.02


@dataclass(frozen=True)
class BillTotals:
    subtotal: Number
    tax: int
    service: int
    total: Number


def round_half_up(value: float) -> int:
    """
    Round to the nearest whole currency unit, halves rounded up.

    Historical bills were rounded this way (2.5 -> 3), which differs from
    Python's ``round`` (2.5 -> 2).
    """
    return math.floor(value + 0.5)


def compute_bill(
    items: Iterable[OrderItem],
    tax_rate: float = DEFAULT_TAX_RATE,
    service_rate: float = DEFAULT_SERVICE_RATE,
) -> BillTotals:
    """
    Compute bill totals for a sequence of items.

    Tax and service are rounded independently before summing; the total
    itself is never rounded.

    Args:
        items: Order lines
        tax_rate: Tax as decimal
        service_rate: Service charge as decimal

    Returns:
        BillTotals: subtotal, tax, service and total
    """
    subtotal = sum(item.price * item.quantity for item in items)
    tax = round_half_up(subtotal * tax_rate)
    service = round_half_up(subtotal * service_rate)
    return BillTotals(
        subtotal=subtotal,
        tax=tax,
        service=service,
        total=subtotal + tax + service,
    )
