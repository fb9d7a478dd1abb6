"""
Daily Report Aggregation

Read-only statistics derived from stored bills. Bills are bucketed into days
and hours in the configured report timezone.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional, Union
from zoneinfo import ZoneInfo

from snappy_serve.core.exceptions import ValidationError
from snappy_serve.domain import Bill
from snappy_serve.services.storage.base import BillRepository

Number = Union[int, float]

TOP_ITEMS_LIMIT = 10


@dataclass
class TopItem:
    name: str
    quantity: int = 0
    revenue: Number = 0


@dataclass
class HourlyBucket:
    hour: str
    orders: int = 0
    revenue: Number = 0


@dataclass
class DailyReport:
    date: str
    total_orders: int
    total_revenue: Number
    average_order_value: float
    total_customers: int
    top_items: list[TopItem] = field(default_factory=list)
    hourly_breakdown: list[HourlyBucket] = field(default_factory=list)


def parse_report_date(value: Optional[str], tz: ZoneInfo) -> date:
    """``YYYY-MM-DD`` or today in ``tz`` when omitted."""
    if not value:
        return datetime.now(tz).date()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid report date {value!r}, expected YYYY-MM-DD")


def aggregate_daily(bills: Iterable[Bill], day: date, tz: ZoneInfo) -> DailyReport:
    """
    Build the report for ``day``.

    Items are merged by id, falling back to name; top items are ranked by
    quantity.
    """
    hourly = [HourlyBucket(hour=f"{h:02d}:00") for h in range(24)]
    items: dict[str, TopItem] = {}
    customers: set[str] = set()
    total_orders = 0
    total_revenue: Number = 0

    for bill in bills:
        stamp = datetime.fromtimestamp(bill.created_at / 1000, tz)
        if stamp.date() != day:
            continue

        total_orders += 1
        total_revenue += bill.total
        customers.add(bill.customer_name)

        bucket = hourly[stamp.hour]
        bucket.orders += 1
        bucket.revenue += bill.total

        for line in bill.items:
            key = line.id or line.name
            entry = items.setdefault(key, TopItem(name=line.name))
            entry.quantity += line.quantity
            entry.revenue += line.price * line.quantity

    top = sorted(items.values(), key=lambda i: i.quantity, reverse=True)[:TOP_ITEMS_LIMIT]

    return DailyReport(
        date=day.isoformat(),
        total_orders=total_orders,
        total_revenue=total_revenue,
        average_order_value=total_revenue / total_orders if total_orders else 0,
        total_customers=len(customers),
        top_items=top,
        hourly_breakdown=hourly,
    )


class ReportAggregator:
    """Reporting collaborator bound to a bill store."""

    def __init__(self, bills: BillRepository, timezone: str = "UTC"):
        self.bills = bills
        self.tz = ZoneInfo(timezone)

    async def daily_report(self, day: Optional[str] = None) -> DailyReport:
        report_day = parse_report_date(day, self.tz)
        return aggregate_daily(await self.bills.list_all(), report_day, self.tz)
