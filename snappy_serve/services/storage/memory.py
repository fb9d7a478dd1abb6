"""
In-Memory Repositories

Process-local stores. All access happens on the event loop, so plain dicts
are safe for single operations; multi-step read-check-write sequences on one
order are serialized by a per-order ``asyncio.Lock``.

Version: 1.0.0
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional

from snappy_serve.core.exceptions import NotFoundError, ValidationError
from snappy_serve.domain import Bill, Order, now_ms
from snappy_serve.services.storage.base import BillRepository, OrderRepository
from snappy_serve.services.storage.mirror import BILLS, ORDERS, MirrorWriter

logger = logging.getLogger(__name__)


class InMemoryOrderRepository(OrderRepository):
    """Order store backed by a dict, optionally mirrored."""

    def __init__(self, mirror: Optional[MirrorWriter] = None):
        self._orders: dict[str, Order] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._mirror = mirror

    def _lock_for(self, order_id: str) -> asyncio.Lock:
        lock = self._locks.get(order_id)
        if lock is None:
            lock = self._locks[order_id] = asyncio.Lock()
        return lock

    def _shadow_write(self, order: Order) -> None:
        if self._mirror is not None:
            self._mirror.upsert(ORDERS, order.id, order.to_document())

    async def add(self, order: Order) -> Order:
        if order.id in self._orders:
            raise ValidationError(f"Order {order.id} already exists")
        stored = order.copy()
        self._orders[stored.id] = stored
        self._shadow_write(stored)
        return stored.copy()

    async def get(self, order_id: str) -> Optional[Order]:
        order = self._orders.get(order_id)
        return order.copy() if order else None

    async def list_all(self) -> list[Order]:
        return [order.copy() for order in self._orders.values()]

    @asynccontextmanager
    async def mutate(self, order_id: str) -> AsyncIterator[Order]:
        async with self._lock_for(order_id):
            current = self._orders.get(order_id)
            if current is None:
                raise NotFoundError(f"Order {order_id} not found")

            working = current.copy()
            yield working

            if working == current:
                return
            working.id = current.id
            working.created_at = current.created_at
            working.version = current.version + 1
            working.updated_at = now_ms()
            self._orders[order_id] = working
            self._shadow_write(working)
            logger.debug(f"Order {order_id} committed at version {working.version}")

    async def hydrate(self, orders: Iterable[Order]) -> int:
        count = 0
        for order in orders:
            self._orders[order.id] = order.copy()
            count += 1
        return count

    def __len__(self) -> int:
        return len(self._orders)


class InMemoryBillRepository(BillRepository):
    """Bill store backed by dicts, optionally mirrored."""

    def __init__(self, mirror: Optional[MirrorWriter] = None):
        self._bills: dict[str, Bill] = {}
        self._by_order: dict[str, str] = {}
        self._mirror = mirror

    def _index(self, bill: Bill) -> None:
        self._bills[bill.id] = bill
        if bill.order_id is not None:
            self._by_order[bill.order_id] = bill.id

    async def add(self, bill: Bill) -> Bill:
        if bill.order_id is not None and bill.order_id in self._by_order:
            raise ValidationError(f"Order {bill.order_id} already has a bill")
        self._index(bill)
        if self._mirror is not None:
            self._mirror.upsert(BILLS, bill.id, bill.to_document())
        return bill

    async def get(self, bill_id: str) -> Optional[Bill]:
        return self._bills.get(bill_id)

    async def get_for_order(self, order_id: str) -> Optional[Bill]:
        bill_id = self._by_order.get(order_id)
        return self._bills.get(bill_id) if bill_id else None

    async def list_all(self) -> list[Bill]:
        return list(self._bills.values())

    async def hydrate(self, bills: Iterable[Bill]) -> int:
        count = 0
        for bill in bills:
            self._index(bill)
            count += 1
        return count

    def __len__(self) -> int:
        return len(self._bills)
