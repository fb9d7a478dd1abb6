"""
Repository Abstract Base Classes

Callers (lifecycle engine, API, reports) depend only on these interfaces, so
the in-memory backing can be swapped for a persistent one without touching
them.

Version: 1.0.0
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, Iterable, Optional

from snappy_serve.domain import Bill, Order


class OrderRepository(ABC):
    """
    Authoritative order store.

    Readers always receive copies. Writers go through ``mutate``, which
    serializes all mutations of one order id.
    """

    @abstractmethod
    async def add(self, order: Order) -> Order:
        """Insert a new order and return a copy of the stored entity."""
        pass

    @abstractmethod
    async def get(self, order_id: str) -> Optional[Order]:
        """Point read by id; ``None`` if unknown."""
        pass

    @abstractmethod
    async def list_all(self) -> list[Order]:
        """Full snapshot in insertion order."""
        pass

    @abstractmethod
    def mutate(self, order_id: str) -> AsyncContextManager[Order]:
        """
        Lock ``order_id`` and yield a working copy.

        The copy is committed when the block exits normally and the copy
        differs from the stored order. Raising inside the block leaves the
        stored order untouched.

        Raises:
            NotFoundError: Unknown order id
        """
        pass

    @abstractmethod
    async def hydrate(self, orders: Iterable[Order]) -> int:
        """Load previously persisted orders without re-mirroring them."""
        pass


class BillRepository(ABC):
    """Bill store, indexed by bill id and by originating order id."""

    @abstractmethod
    async def add(self, bill: Bill) -> Bill:
        pass

    @abstractmethod
    async def get(self, bill_id: str) -> Optional[Bill]:
        pass

    @abstractmethod
    async def get_for_order(self, order_id: str) -> Optional[Bill]:
        """The bill generated from ``order_id``, if any."""
        pass

    @abstractmethod
    async def list_all(self) -> list[Bill]:
        pass

    @abstractmethod
    async def hydrate(self, bills: Iterable[Bill]) -> int:
        pass
