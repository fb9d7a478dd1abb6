"""
                        Services Module

Business logic wired from configuration. Each getter returns a process-wide
instance (cached), and ``reset_services`` drops every cached instance so the
next request starts from a clean slate.

Services:
    - lifecycle: order state machine and bill generation
    - menu: menu catalog
    - reports: daily report aggregation over bills
    - storage: order/bill repositories and the document mirror
    - invalidation: menu-updated / reports-updated broadcast
    - excel_manager: process-safe bill ledger
"""

import logging
from functools import lru_cache

from snappy_serve.core.config import get_settings
from snappy_serve.data import DEFAULT_MENU
from snappy_serve.domain import Bill, Order
from snappy_serve.services.invalidation import get_invalidation_bus, reset_invalidation_bus
from snappy_serve.services.lifecycle import OrderLifecycleEngine
from snappy_serve.services.menu import MenuCatalog
from snappy_serve.services.reports import ReportAggregator
from snappy_serve.services.storage import (
    BILLS,
    MENU,
    ORDERS,
    get_bill_repository,
    get_document_mirror,
    get_mirror_writer,
    get_order_repository,
    reset_storage,
)

logger = logging.getLogger(__name__)


@lru_cache()
def get_lifecycle_engine() -> OrderLifecycleEngine:
    settings = get_settings()
    return OrderLifecycleEngine(
        orders=get_order_repository(),
        bills=get_bill_repository(),
        tax_rate=settings.tax_rate,
        service_rate=settings.service_rate,
        max_table_number=settings.max_table_number,
    )


@lru_cache()
def get_menu_catalog() -> MenuCatalog:
    catalog = MenuCatalog(mirror=get_mirror_writer())
    catalog.seed(DEFAULT_MENU, persist=False)
    return catalog


@lru_cache()
def get_report_aggregator() -> ReportAggregator:
    return ReportAggregator(get_bill_repository(), timezone=get_settings().report_timezone)


async def hydrate_from_mirror() -> dict[str, int]:
    """
    Load orders, bills and menu from the mirror into the in-memory stores.

    Returns:
        dict: Number of documents loaded per collection
    """
    mirror = get_document_mirror()
    if mirror is None:
        return {}

    counts = {
        ORDERS: await get_order_repository().hydrate(
            Order.from_document(doc) for doc in await mirror.load_all(ORDERS)
        ),
        BILLS: await get_bill_repository().hydrate(
            Bill.from_document(doc) for doc in await mirror.load_all(BILLS)
        ),
        MENU: get_menu_catalog().hydrate(await mirror.load_all(MENU)),
    }
    logger.info(f"Hydrated from mirror: {counts}")
    return counts


def reset_services() -> None:
    """Drop every cached service instance."""
    get_report_aggregator.cache_clear()
    get_menu_catalog.cache_clear()
    get_lifecycle_engine.cache_clear()
    reset_invalidation_bus()
    reset_storage()


__all__ = [
    "get_lifecycle_engine",
    "get_menu_catalog",
    "get_report_aggregator",
    "get_invalidation_bus",
    "hydrate_from_mirror",
    "reset_services",
]
