"""Guided slot mode: one cyclic cursor per category slot, with locks and shuffle."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from app.core.taxonomy import SlotConfiguration, slot_categories
from app.composer.catalog import ItemCatalog
from app.composer.types import OpResult, ResultKind
from app.schemas.composer import WardrobeItemRef

logger = logging.getLogger("app.composer.slots")

_rng = random.Random()

DIRECTIONS = {"next": 1, "prev": -1, 1: 1, -1: -1}


@dataclass(frozen=True)
class SlotSnapshot:
    """Immutable copy of a slot composition, stored in the history stack."""

    configuration: SlotConfiguration
    index: tuple[tuple[str, int], ...]
    locked: frozenset[str]

    def index_map(self) -> Dict[str, int]:
        return dict(self.index)


class SlotComposition:
    def __init__(
        self,
        catalog: ItemCatalog,
        configuration: SlotConfiguration | str = SlotConfiguration.THREE_PART,
        index: Optional[Dict[str, int]] = None,
        locked: Optional[Iterable[str]] = None,
    ) -> None:
        self.catalog = catalog
        self.configuration = SlotConfiguration(configuration)
        self.index: Dict[str, int] = {}
        self.locked: Set[str] = set(locked or [])
        for category, idx in (index or {}).items():
            if category in self.slots and 0 <= idx < catalog.count(category):
                self.index[category] = idx
        self._fill_unset()

    @property
    def slots(self) -> List[str]:
        return slot_categories(self.configuration)

    def _fill_unset(self) -> bool:
        changed = False
        for category in self.slots:
            if category not in self.index and self.catalog.count(category) > 0:
                self.index[category] = 0
                changed = True
        return changed

    def set_configuration(self, configuration: SlotConfiguration | str) -> OpResult:
        cfg = SlotConfiguration(configuration)
        before = (self.configuration, dict(self.index))
        self.configuration = cfg
        keep = set(self.slots)
        self.index = {c: i for c, i in self.index.items() if c in keep}
        self._fill_unset()
        if (self.configuration, self.index) == before:
            return OpResult.noop("unchanged")
        return OpResult.ok()

    def navigate(self, category: str, direction) -> OpResult:
        step = DIRECTIONS.get(direction)
        if step is None:
            logger.debug("navigate invalid direction=%s", direction)
            return OpResult.noop("invalid_direction", ResultKind.INVARIANT)
        if category not in self.slots:
            logger.debug("navigate category=%s not in configuration=%s", category, self.configuration.value)
            return OpResult.noop("not_in_configuration", ResultKind.INVARIANT)
        if category in self.locked:
            return OpResult.noop("locked", ResultKind.USER_RECOVERABLE)
        count = self.catalog.count(category)
        if count == 0:
            return OpResult.noop("no_items", ResultKind.USER_RECOVERABLE)
        idx = self.index.get(category, 0)
        new_idx = (idx + step) % count
        self.index[category] = new_idx
        if count == 1:
            return OpResult.noop("single_item")
        return OpResult.ok()

    def toggle_lock(self, category: str) -> OpResult:
        if category in self.locked:
            self.locked.discard(category)
        else:
            self.locked.add(category)
        return OpResult.ok()

    def shuffle(self, rng: Optional[random.Random] = None) -> OpResult:
        rng = rng or _rng
        changed = False
        for category in self.slots:
            if category in self.locked:
                continue
            count = self.catalog.count(category)
            if count == 0:
                continue
            new_idx = rng.randrange(count)
            if self.index.get(category) != new_idx:
                changed = True
            self.index[category] = new_idx
        if not changed:
            return OpResult.noop("unchanged")
        return OpResult.ok()

    def resolve_item(self, category: str) -> Optional[WardrobeItemRef]:
        if category not in self.slots:
            return None
        return self.catalog.at(category, self.index.get(category))

    def resolved(self) -> Dict[str, WardrobeItemRef]:
        out: Dict[str, WardrobeItemRef] = {}
        for category in self.slots:
            item = self.resolve_item(category)
            if item is not None:
                out[category] = item
        return out

    def selected_item_ids(self) -> Dict[str, Optional[str]]:
        return {c: (it.id if (it := self.resolve_item(c)) else None) for c in self.slots}

    def has_selection(self) -> bool:
        return any(self.resolve_item(c) is not None for c in self.slots)

    def snapshot(self) -> SlotSnapshot:
        return SlotSnapshot(
            configuration=self.configuration,
            index=tuple(sorted(self.index.items())),
            locked=frozenset(self.locked),
        )

    def restore(self, snap: SlotSnapshot, *, locks: bool = False) -> None:
        self.configuration = snap.configuration
        self.index = snap.index_map()
        if locks:
            self.locked = set(snap.locked)

    def as_dict(self) -> dict:
        return {
            "configuration": self.configuration.value,
            "slots": self.slots,
            "index": dict(self.index),
            "locked": sorted(self.locked),
            "items": self.selected_item_ids(),
            "counts": {c: self.catalog.count(c) for c in self.slots},
        }
