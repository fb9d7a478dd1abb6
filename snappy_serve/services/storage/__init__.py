"""
Storage Factory

Returns the process-wide order and bill repositories, wired to the document
mirror when MIRROR_ENABLED is set.

Usage:
    from snappy_serve.services.storage import get_order_repository

    orders = get_order_repository()
    async with orders.mutate(order_id) as order:
        order.status = OrderStatus.PREPARING
"""

import logging
from functools import lru_cache
from typing import Optional

from snappy_serve.core.config import get_settings
from snappy_serve.services.storage.base import BillRepository, OrderRepository
from snappy_serve.services.storage.memory import InMemoryBillRepository, InMemoryOrderRepository
from snappy_serve.services.storage.mirror import (
    BILLS,
    MENU,
    ORDERS,
    DocumentMirror,
    MirrorWriter,
    SQLAlchemyDocumentMirror,
)

logger = logging.getLogger(__name__)


@lru_cache()
def get_document_mirror() -> Optional[DocumentMirror]:
    """The configured mirror, or ``None`` when mirroring is disabled."""
    settings = get_settings()

    if not settings.mirror_enabled:
        logger.info("Mirror Store: disabled (in-memory only)")
        return None
    logger.info("Mirror Store: Using SQLAlchemyDocumentMirror")
    return SQLAlchemyDocumentMirror()


@lru_cache()
def get_mirror_writer() -> Optional[MirrorWriter]:
    mirror = get_document_mirror()
    return MirrorWriter(mirror) if mirror is not None else None


@lru_cache()
def get_order_repository() -> OrderRepository:
    return InMemoryOrderRepository(mirror=get_mirror_writer())


@lru_cache()
def get_bill_repository() -> BillRepository:
    return InMemoryBillRepository(mirror=get_mirror_writer())


def reset_storage() -> None:
    """
    Clear the cached stores.

    The next call to any getter builds fresh, empty instances.
    """
    get_bill_repository.cache_clear()
    get_order_repository.cache_clear()
    get_mirror_writer.cache_clear()
    get_document_mirror.cache_clear()
    logger.debug("Storage caches cleared")


__all__ = [
    "get_document_mirror",
    "get_mirror_writer",
    "get_order_repository",
    "get_bill_repository",
    "reset_storage",
    "OrderRepository",
    "BillRepository",
    "DocumentMirror",
    "MirrorWriter",
    "SQLAlchemyDocumentMirror",
    "InMemoryOrderRepository",
    "InMemoryBillRepository",
    "ORDERS",
    "BILLS",
    "MENU",
]
