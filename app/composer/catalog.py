"""Session-scoped, read-only cache of the user's wardrobe items."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from app.core.taxonomy import is_category
from app.composer.providers.base import CatalogProvider
from app.schemas.composer import WardrobeItemRef

logger = logging.getLogger("app.composer.catalog")


class ItemCatalog:
    """Items grouped by category, in the order the wardrobe service returned them.

    Loaded once per session. A failed load leaves the catalog empty and records
    the error; composition operations then see every category as empty.
    """

    def __init__(self, items: Optional[Iterable[WardrobeItemRef]] = None) -> None:
        self._by_category: Dict[str, List[WardrobeItemRef]] = {}
        self._by_id: Dict[str, WardrobeItemRef] = {}
        self.loaded = False
        self.error: Optional[str] = None
        if items is not None:
            self._index(items)
            self.loaded = True

    async def load(self, provider: CatalogProvider, user_id: str, *, force: bool = False) -> bool:
        if self.loaded and not force:
            return self.error is None
        try:
            items = await provider.fetch_active_items(user_id)
        except Exception as e:
            logger.warning("catalog load failed user=%s reason=%s", user_id, e)
            self._by_category = {}
            self._by_id = {}
            self.error = str(e) or e.__class__.__name__
            self.loaded = True
            return False
        self._index(items)
        self.error = None
        self.loaded = True
        logger.info("catalog loaded user=%s items=%s", user_id, len(self._by_id))
        return True

    def _index(self, items: Iterable[WardrobeItemRef]) -> None:
        by_category: Dict[str, List[WardrobeItemRef]] = {}
        by_id: Dict[str, WardrobeItemRef] = {}
        for item in items:
            if item.status != "active":
                continue
            if not is_category(item.category):
                logger.warning("catalog skipping item=%s unknown category=%s", item.id, item.category)
                continue
            if item.id in by_id:
                continue
            by_category.setdefault(item.category, []).append(item)
            by_id[item.id] = item
        self._by_category = by_category
        self._by_id = by_id

    def items_of(self, category: str) -> List[WardrobeItemRef]:
        return list(self._by_category.get(category, []))

    def count(self, category: str) -> int:
        return len(self._by_category.get(category, []))

    def at(self, category: str, index: Optional[int]) -> Optional[WardrobeItemRef]:
        if index is None:
            return None
        items = self._by_category.get(category, [])
        if 0 <= index < len(items):
            return items[index]
        return None

    def index_of(self, category: str, item_id: str) -> Optional[int]:
        for i, item in enumerate(self._by_category.get(category, [])):
            if item.id == item_id:
                return i
        return None

    def get(self, item_id: str) -> Optional[WardrobeItemRef]:
        return self._by_id.get(item_id)

    def __len__(self) -> int:
        return len(self._by_id)
