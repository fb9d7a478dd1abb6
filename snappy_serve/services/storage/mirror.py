"""
Document Mirror

Optional external persistence shadow-written on top of the in-memory stores.
The in-memory write is authoritative: mirror writes are dispatched as
background tasks by ``MirrorWriter`` and their failures are only logged.

Version: 1.0.0
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy import delete, func, select, text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError

from snappy_serve.core.exceptions import PersistenceWarning, StartupError
from snappy_serve.database import dispose_engine, get_session_maker, init_db
from snappy_serve.models import MirrorDocument

logger = logging.getLogger(__name__)

ORDERS = "orders"
BILLS = "bills"
MENU = "menu"


class DocumentMirror(ABC):
    """Abstract document store keyed by (collection, id)."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def connect(self, timeout: float) -> None:
        """
        Make the store usable.

        Raises:
            StartupError: Store unreachable within ``timeout`` seconds
        """
        pass

    @abstractmethod
    async def upsert(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        pass

    @abstractmethod
    async def load_all(self, collection: str) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class SQLAlchemyDocumentMirror(DocumentMirror):
    """Mirror backed by the ``mirror_documents`` table."""

    @property
    def provider_name(self) -> str:
        return "sqlalchemy"

    async def connect(self, timeout: float) -> None:
        try:
            await init_db(timeout=timeout)
        except asyncio.TimeoutError:
            raise StartupError(f"Mirror store did not answer within {timeout}s")
        except (SQLAlchemyError, OSError) as e:
            raise StartupError(f"Mirror store unreachable: {e}")

    async def upsert(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        try:
            statement = insert(MirrorDocument).values(
                collection=collection, doc_id=doc_id, body=document
            )
            statement = statement.on_conflict_do_update(
                index_elements=[MirrorDocument.collection, MirrorDocument.doc_id],
                set_={"body": statement.excluded.body, "updated_at": func.now()},
            )
            async with get_session_maker()() as session:
                await session.execute(statement)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceWarning(f"Upsert {collection}/{doc_id} failed: {e}")

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            async with get_session_maker()() as session:
                await session.execute(
                    delete(MirrorDocument).where(
                        MirrorDocument.collection == collection,
                        MirrorDocument.doc_id == doc_id,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceWarning(f"Delete {collection}/{doc_id} failed: {e}")

    async def load_all(self, collection: str) -> list[dict[str, Any]]:
        async with get_session_maker()() as session:
            result = await session.execute(
                select(MirrorDocument)
                .where(MirrorDocument.collection == collection)
                .order_by(MirrorDocument.created_at)
            )
            return [row.body for row in result.scalars().all()]

    async def health_check(self) -> bool:
        try:
            async with get_session_maker()() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Mirror health check failed: {e}")
            return False

    async def close(self) -> None:
        await dispose_engine()


class MirrorWriter:
    """
    Fire-and-forget dispatcher for mirror writes.

    Writes are scheduled on the running loop and tracked so that ``flush``
    can wait for them at shutdown. Writes to the same document run one after
    another in dispatch order; different documents are written concurrently.
    Any failure is logged as a ``PersistenceWarning`` and swallowed.
    """

    def __init__(self, mirror: DocumentMirror):
        self.mirror = mirror
        self._pending: set[asyncio.Task] = set()
        self._tails: dict[tuple[str, str], asyncio.Task] = {}

    @property
    def pending(self) -> int:
        return len(self._pending)

    def upsert(self, collection: str, doc_id: str, document: dict[str, Any]) -> None:
        self._dispatch(
            (collection, doc_id),
            f"upsert {collection}/{doc_id}",
            lambda: self.mirror.upsert(collection, doc_id, document),
        )

    def delete(self, collection: str, doc_id: str) -> None:
        self._dispatch(
            (collection, doc_id),
            f"delete {collection}/{doc_id}",
            lambda: self.mirror.delete(collection, doc_id),
        )

    def _dispatch(
        self,
        key: tuple[str, str],
        label: str,
        write: Callable[[], Awaitable[None]],
    ) -> None:
        previous = self._tails.get(key)
        task = asyncio.get_running_loop().create_task(self._run(label, write, previous))
        self._tails[key] = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(lambda done: self._release(key, done))

    def _release(self, key: tuple[str, str], task: asyncio.Task) -> None:
        if self._tails.get(key) is task:
            del self._tails[key]

    async def _run(
        self,
        label: str,
        write: Callable[[], Awaitable[None]],
        previous: Optional[asyncio.Task],
    ) -> None:
        if previous is not None:
            # Writes to one document apply in dispatch order
            await asyncio.wait({previous})
        try:
            await write()
            logger.debug(f"Mirror {label} ok")
        except Exception as e:
            warning = e if isinstance(e, PersistenceWarning) else PersistenceWarning(str(e))
            logger.warning(f"Mirror {label} failed, in-memory state kept: {warning.message}")

    async def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight mirror writes."""
        if not self._pending:
            return
        _, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} mirror writes still pending after flush")
