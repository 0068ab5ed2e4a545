"""
Item Catalog for the favorites app
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional, Tuple, Union

logger = logging.getLogger('favorites.services.item_catalog')

@dataclass(frozen=True)
class Item:
    """A selectable catalog entry. Identity is the id; names may repeat."""
    id: uuid.UUID
    name: str

class ItemCatalog:
    """
    Fixed, ordered collection of items with lookup by id.

    Insertion order is display order. The catalog is not mutated after
    construction.
    """

    def __init__(self, items: Iterable[Item]):
        ordered = tuple(items)
        by_id: Dict[uuid.UUID, Item] = {}

        for item in ordered:
            if item.id in by_id:
                raise ValueError(f"Duplicate item id in catalog: {item.id}")
            by_id[item.id] = item

        self._items: Tuple[Item, ...] = ordered
        self._by_id = by_id
        logger.debug(f"ItemCatalog initialized with {len(ordered)} items")

    @property
    def items(self) -> Tuple[Item, ...]:
        return self._items

    def find(self, item_id: uuid.UUID) -> Optional[Item]:
        """Return the item with this id, or None."""
        return self._by_id.get(item_id)

    def find_by_name(self, name: str) -> Optional[Item]:
        """Return the first item with this display name, or None."""
        for item in self._items:
            if item.name == name:
                return item
        return None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items)

    def __contains__(self, item_id: Union[uuid.UUID, Item]) -> bool:
        if isinstance(item_id, Item):
            item_id = item_id.id
        return item_id in self._by_id

# Seed data. The ids must stay stable across launches because favorites
# are persisted by id.
SAMPLE_ITEMS: Tuple[Item, ...] = (
    Item(id=uuid.UUID("bf85d038-cb02-494b-8cd2-e665d72b30f4"), name="item1"),
    Item(id=uuid.UUID("923fda1b-d58d-4aec-b279-a7bf21b5b354"), name="item2"),
    Item(id=uuid.UUID("c3fc1ca6-97b0-4717-8d67-ce5fca05da5a"), name="item3"),
    Item(id=uuid.UUID("a687d3f9-f36a-466c-a9b6-4ab493eaa7a3"), name="item4"),
    Item(id=uuid.UUID("4c7fff89-0dc2-457f-806a-d87c384f56f0"), name="item5"),
    Item(id=uuid.UUID("fb391cc9-4a48-4d7c-b00b-4cd18b18f460"), name="item6"),
)

def create_sample_catalog() -> ItemCatalog:
    """Catalog built from the seed items"""
    return ItemCatalog(SAMPLE_ITEMS)
