"""
Menu Catalog

Category-grouped menu with CRUD. A read/write key-value collaborator of the
ordering core: orders snapshot item name and price, they never reference the
catalog afterwards.
"""

import logging
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Iterable, Optional, Union

from snappy_serve.core.exceptions import NotFoundError, ValidationError
from snappy_serve.domain import now_ms
from snappy_serve.services.storage.mirror import MENU, MirrorWriter

logger = logging.getLogger(__name__)

Number = Union[int, float]


@dataclass
class MenuItem:
    id: str
    name: str
    category: str
    price: Number
    available: bool = True
    description: Optional[str] = None
    image: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_document(cls, doc: dict[str, Any], category: Optional[str] = None) -> "MenuItem":
        available = doc.get("available")
        return cls(
            id=str(doc["id"]),
            name=doc["name"],
            category=doc.get("category") or category or "Uncategorized",
            price=doc["price"],
            available=available if isinstance(available, bool) else True,
            description=doc.get("description"),
            image=doc.get("image"),
        )


def _check_price(price: Any) -> None:
    if not isinstance(price, (int, float)) or isinstance(price, bool) or price < 0:
        raise ValidationError("Price must be a non-negative number")


class MenuCatalog:
    """In-memory menu, optionally mirrored."""

    def __init__(
        self,
        mirror: Optional[MirrorWriter] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._items: dict[str, MenuItem] = {}
        self._mirror = mirror
        self._clock = clock

    def _shadow_write(self, item: MenuItem) -> None:
        if self._mirror is not None:
            self._mirror.upsert(MENU, item.id, item.to_document())

    def grouped(self) -> dict[str, list[MenuItem]]:
        """All items grouped by category, in insertion order."""
        groups: dict[str, list[MenuItem]] = {}
        for item in self._items.values():
            groups.setdefault(item.category, []).append(item)
        return groups

    def get(self, item_id: str) -> MenuItem:
        item = self._items.get(item_id)
        if item is None:
            raise NotFoundError(f"Menu item {item_id} not found")
        return item

    def add(
        self,
        name: str,
        category: str,
        price: Number,
        id: Optional[str] = None,
        available: bool = True,
        description: Optional[str] = None,
        image: Optional[str] = None,
    ) -> MenuItem:
        if not name or not category:
            raise ValidationError("Menu items need a name and a category")
        _check_price(price)

        item_id = id or f"item-{self._clock()}"
        if item_id in self._items:
            raise ValidationError(f"Menu item {item_id} already exists")

        item = MenuItem(
            id=item_id,
            name=name,
            category=category,
            price=price,
            available=available,
            description=description,
            image=image,
        )
        self._items[item.id] = item
        self._shadow_write(item)
        logger.info(f"Menu item {item.id} added to {category}")
        return item

    def update(self, item_id: str, **changes: Any) -> MenuItem:
        """
        Apply a partial update; ``None`` values are ignored.

        Moving an item to another category places it last in that category.
        """
        current = self.get(item_id)
        changes = {k: v for k, v in changes.items() if v is not None and k != "id"}
        if "price" in changes:
            _check_price(changes["price"])

        updated = replace(current, **changes)
        if updated.category != current.category:
            del self._items[item_id]
        self._items[item_id] = updated
        self._shadow_write(updated)
        logger.info(f"Menu item {item_id} updated")
        return updated

    def remove(self, item_id: str) -> MenuItem:
        item = self.get(item_id)
        del self._items[item_id]
        if self._mirror is not None:
            self._mirror.delete(MENU, item_id)
        logger.info(f"Menu item {item_id} removed")
        return item

    def seed(self, menu: dict[str, list[dict]], persist: bool = True) -> int:
        """
        Upsert every item of a ``{category: [item]}`` mapping.

        ``persist=False`` skips the mirror, for seeding before the event
        loop runs.
        """
        count = 0
        for category, items in menu.items():
            for doc in items:
                item = MenuItem.from_document(doc, category=category)
                self._items[item.id] = item
                if persist:
                    self._shadow_write(item)
                count += 1
        logger.info(f"Seeded {count} menu items")
        return count

    def hydrate(self, documents: Iterable[dict[str, Any]]) -> int:
        """Replace the catalog with mirrored documents."""
        items = [MenuItem.from_document(doc) for doc in documents]
        if items:
            self._items = {item.id: item for item in items}
        return len(items)

    def __len__(self) -> int:
        return len(self._items)
