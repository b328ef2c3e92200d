"""Free-form canvas mode: placed items plus a pan/zoom viewport."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from app.core.config import settings
from app.composer.types import OpResult, ResultKind

logger = logging.getLogger("app.composer.canvas")


def _positive(value: Any, default: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    return v if v > 0 else default


@dataclass(frozen=True)
class CanvasItem:
    id: str
    item_ref: str
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0
    z_index: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "item_ref": self.item_ref,
            "position": {"x": self.x, "y": self.y},
            "size": {"width": self.width, "height": self.height},
            "rotation": self.rotation,
            "z_index": self.z_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CanvasItem":
        pos = data.get("position") or {}
        size = data.get("size") or {}
        default = settings.COMPOSER_DEFAULT_ITEM_SIZE
        return cls(
            id=str(data.get("id") or f"canvas-{uuid.uuid4().hex[:12]}"),
            item_ref=str(data.get("item_ref") or data.get("clothItemId") or data.get("item_id")),
            x=float(pos.get("x", 0.0)),
            y=float(pos.get("y", 0.0)),
            width=_positive(size.get("width"), default),
            height=_positive(size.get("height"), default),
            rotation=normalize_rotation(float(data.get("rotation", 0.0))),
            z_index=int(data.get("z_index", data.get("zIndex", 0))),
        )


@dataclass
class Viewport:
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {"zoom": self.zoom, "pan": {"x": self.pan_x, "y": self.pan_y}}

    def to_canvas(self, x: float, y: float) -> Tuple[float, float]:
        """Screen coordinates to canvas coordinates under the current transform."""
        return (x - self.pan_x) / self.zoom, (y - self.pan_y) / self.zoom


def normalize_rotation(deg: float) -> float:
    r = deg % 360.0
    # tiny negatives round up to 360.0
    return 0.0 if r >= 360.0 else r


def clamp_zoom(zoom: float, bounds: Optional[Tuple[float, float]] = None) -> float:
    lo, hi = bounds or settings.zoom_bounds
    return max(lo, min(hi, zoom))


class SpatialComposition:
    def __init__(
        self,
        items: Optional[Iterable[CanvasItem]] = None,
        viewport: Optional[Viewport] = None,
        zoom_bounds: Optional[Tuple[float, float]] = None,
    ) -> None:
        self.zoom_bounds = zoom_bounds or settings.zoom_bounds
        self.items: List[CanvasItem] = list(items or [])
        self.viewport = viewport or Viewport()
        self.viewport.zoom = clamp_zoom(self.viewport.zoom, self.zoom_bounds)
        self.selected_item_id: Optional[str] = None
        self.show_grid = False
        self._issued_ids: Set[str] = {it.id for it in self.items}
        self._next_z = max((it.z_index for it in self.items), default=-1) + 1

    def get(self, canvas_id: str) -> Optional[CanvasItem]:
        for it in self.items:
            if it.id == canvas_id:
                return it
        return None

    def _new_id(self) -> str:
        while True:
            cid = f"canvas-{uuid.uuid4().hex[:12]}"
            if cid not in self._issued_ids:
                self._issued_ids.add(cid)
                return cid

    def _take_z(self) -> int:
        z = self._next_z
        self._next_z += 1
        return z

    def add_item(
        self,
        item_ref: str,
        position: Tuple[float, float] = (0.0, 0.0),
        size: Optional[Tuple[float, float]] = None,
    ) -> CanvasItem:
        default = settings.COMPOSER_DEFAULT_ITEM_SIZE
        width, height = size or (default, default)
        if width <= 0 or height <= 0:
            width, height = default, default
        item = CanvasItem(
            id=self._new_id(),
            item_ref=item_ref,
            x=float(position[0]),
            y=float(position[1]),
            width=float(width),
            height=float(height),
            rotation=0.0,
            z_index=self._take_z(),
        )
        self.items.append(item)
        return item

    def update_item(
        self,
        canvas_id: str,
        *,
        position: Optional[Tuple[float, float]] = None,
        size: Optional[Tuple[float, float]] = None,
        rotation: Optional[float] = None,
    ) -> OpResult:
        for i, it in enumerate(self.items):
            if it.id != canvas_id:
                continue
            changes: Dict[str, Any] = {}
            if position is not None:
                changes["x"], changes["y"] = float(position[0]), float(position[1])
            if size is not None:
                if size[0] <= 0 or size[1] <= 0:
                    logger.debug("update_item rejected size=%s id=%s", size, canvas_id)
                    return OpResult.noop("invalid_size", ResultKind.INVARIANT)
                changes["width"], changes["height"] = float(size[0]), float(size[1])
            if rotation is not None:
                changes["rotation"] = normalize_rotation(float(rotation))
            if not changes:
                return OpResult.noop("unchanged")
            self.items[i] = replace(it, **changes)
            return OpResult.ok()
        logger.debug("update_item unknown id=%s", canvas_id)
        return OpResult.noop("unknown_item", ResultKind.INVARIANT)

    def remove_item(self, canvas_id: str) -> OpResult:
        before = len(self.items)
        self.items = [it for it in self.items if it.id != canvas_id]
        if len(self.items) == before:
            logger.debug("remove_item unknown id=%s", canvas_id)
            return OpResult.noop("unknown_item", ResultKind.INVARIANT)
        if self.selected_item_id == canvas_id:
            self.selected_item_id = None
        return OpResult.ok()

    def clear(self) -> OpResult:
        if not self.items:
            return OpResult.noop("empty")
        self.items = []
        self.selected_item_id = None
        return OpResult.ok()

    def bring_to_front(self, canvas_id: str) -> OpResult:
        it = self.get(canvas_id)
        if it is None:
            logger.debug("bring_to_front unknown id=%s", canvas_id)
            return OpResult.noop("unknown_item", ResultKind.INVARIANT)
        if it.z_index == self._next_z - 1:
            return OpResult.noop("already_front")
        self.items = [replace(x, z_index=self._take_z()) if x.id == canvas_id else x for x in self.items]
        return OpResult.ok()

    def select(self, canvas_id: Optional[str]) -> OpResult:
        if canvas_id is not None and self.get(canvas_id) is None:
            return OpResult.noop("unknown_item", ResultKind.INVARIANT)
        self.selected_item_id = canvas_id
        return OpResult.ok()

    def toggle_grid(self) -> OpResult:
        self.show_grid = not self.show_grid
        return OpResult.ok()

    def auto_arrange(self, spacing: float = 50.0, x: float = 100.0, top: float = 100.0) -> OpResult:
        if not self.items:
            return OpResult.noop("empty")
        arranged = []
        y = top
        for it in self.items:
            arranged.append(replace(it, x=x, y=y))
            y += it.height + spacing
        self.items = arranged
        return OpResult.ok()

    # viewport

    def set_viewport(
        self, *, zoom: Optional[float] = None, pan: Optional[Tuple[float, float]] = None
    ) -> OpResult:
        before = (self.viewport.zoom, self.viewport.pan_x, self.viewport.pan_y)
        if zoom is not None:
            self.viewport.zoom = clamp_zoom(float(zoom), self.zoom_bounds)
        if pan is not None:
            self.viewport.pan_x, self.viewport.pan_y = float(pan[0]), float(pan[1])
        if before == (self.viewport.zoom, self.viewport.pan_x, self.viewport.pan_y):
            return OpResult.noop("unchanged")
        return OpResult.ok()

    def zoom_by(self, delta: float) -> OpResult:
        return self.set_viewport(zoom=self.viewport.zoom + delta)

    def zoom_in(self) -> OpResult:
        return self.zoom_by(settings.COMPOSER_BUTTON_ZOOM_STEP)

    def zoom_out(self) -> OpResult:
        return self.zoom_by(-settings.COMPOSER_BUTTON_ZOOM_STEP)

    def fit_to_screen(self) -> OpResult:
        return self.set_viewport(zoom=1.0, pan=(0.0, 0.0))

    def ordered(self) -> List[CanvasItem]:
        return sorted(self.items, key=lambda it: it.z_index)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "items": [it.as_dict() for it in self.items],
            "viewport": self.viewport.as_dict(),
            "selected_item_id": self.selected_item_id,
            "show_grid": self.show_grid,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpatialComposition":
        vp = data.get("viewport") or {}
        pan = vp.get("pan") or {}
        items = [CanvasItem.from_dict(d) for d in data.get("items") or []]
        return cls(
            items=items,
            viewport=Viewport(
                zoom=float(vp.get("zoom", 1.0)),
                pan_x=float(pan.get("x", 0.0)),
                pan_y=float(pan.get("y", 0.0)),
            ),
        )
