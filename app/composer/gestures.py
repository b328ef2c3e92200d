"""Pointer, touch and wheel input for the canvas.

At most one gesture is active at a time. Starting a gesture while another is
active is refused; pointer-up or touch-end always returns to ``none``.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

from app.core.config import settings
from app.composer.canvas import SpatialComposition
from app.composer.types import OpResult, ResultKind

logger = logging.getLogger("app.composer.gestures")

Point = Tuple[float, float]


class GestureKind(str, Enum):
    NONE = "none"
    DRAGGING = "dragging"
    PANNING = "panning"
    PINCHING = "pinching"


@dataclass(frozen=True)
class GestureState:
    kind: GestureKind = GestureKind.NONE
    item_id: Optional[str] = None
    offset: Point = (0.0, 0.0)
    pan_origin: Point = (0.0, 0.0)
    initial_distance: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value}
        if self.kind is GestureKind.DRAGGING:
            out["item_id"] = self.item_id
        if self.kind is GestureKind.PINCHING:
            out["initial_distance"] = self.initial_distance
        return out


IDLE = GestureState()


def _distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def _pt(p: Any) -> Point:
    if isinstance(p, dict):
        return float(p["x"]), float(p["y"])
    if hasattr(p, "x") and hasattr(p, "y"):
        return float(p.x), float(p.y)
    return float(p[0]), float(p[1])


class GestureController:
    def __init__(self, canvas: SpatialComposition, wheel_step: Optional[float] = None) -> None:
        self.canvas = canvas
        self.wheel_step = wheel_step if wheel_step is not None else settings.COMPOSER_WHEEL_ZOOM_STEP
        self.state = IDLE

    @property
    def kind(self) -> GestureKind:
        return self.state.kind

    @property
    def active(self) -> bool:
        return self.state.kind is not GestureKind.NONE

    # pointer

    def pointer_down(self, x: float, y: float, target_item_id: Optional[str] = None) -> OpResult:
        if self.active:
            return OpResult.noop(f"{self.state.kind.value}_active", ResultKind.USER_RECOVERABLE)
        vp = self.canvas.viewport
        if target_item_id is not None:
            item = self.canvas.get(target_item_id)
            if item is None:
                logger.debug("pointer_down unknown item=%s", target_item_id)
                return OpResult.noop("unknown_item", ResultKind.INVARIANT)
            cx, cy = vp.to_canvas(x, y)
            self.canvas.select(item.id)
            self.state = GestureState(
                kind=GestureKind.DRAGGING, item_id=item.id, offset=(cx - item.x, cy - item.y)
            )
            return OpResult.ok()
        self.state = GestureState(kind=GestureKind.PANNING, pan_origin=(x - vp.pan_x, y - vp.pan_y))
        return OpResult.ok()

    def pointer_move(self, x: float, y: float) -> OpResult:
        st = self.state
        if st.kind is GestureKind.DRAGGING:
            cx, cy = self.canvas.viewport.to_canvas(x, y)
            return self.canvas.update_item(st.item_id, position=(cx - st.offset[0], cy - st.offset[1]))
        if st.kind is GestureKind.PANNING:
            return self.canvas.set_viewport(pan=(x - st.pan_origin[0], y - st.pan_origin[1]))
        return OpResult.noop("no_gesture")

    def pointer_up(self) -> OpResult:
        was_dragging = self.state.kind is GestureKind.DRAGGING
        self.state = IDLE
        if was_dragging:
            self.canvas.select(None)
        return OpResult.ok()

    # touch

    def touch_start(self, points: Sequence[Any]) -> OpResult:
        pts = [_pt(p) for p in points]
        if len(pts) >= 2:
            if self.state.kind is GestureKind.DRAGGING:
                return OpResult.noop("dragging_active", ResultKind.USER_RECOVERABLE)
            d = _distance(pts[0], pts[1])
            if d <= 0:
                return OpResult.noop("degenerate_pinch")
            self.state = GestureState(kind=GestureKind.PINCHING, initial_distance=d)
            return OpResult.ok()
        if len(pts) == 1:
            return self.pointer_down(pts[0][0], pts[0][1])
        return OpResult.noop("no_points")

    def touch_move(self, points: Sequence[Any]) -> OpResult:
        pts = [_pt(p) for p in points]
        st = self.state
        if len(pts) >= 2 and st.kind is GestureKind.PINCHING:
            d = _distance(pts[0], pts[1])
            if d <= 0:
                return OpResult.noop("degenerate_pinch")
            scale = d / st.initial_distance
            res = self.canvas.set_viewport(zoom=self.canvas.viewport.zoom * scale)
            self.state = GestureState(kind=GestureKind.PINCHING, initial_distance=d)
            return res
        if len(pts) == 1:
            return self.pointer_move(pts[0][0], pts[0][1])
        return OpResult.noop("no_gesture")

    def touch_end(self) -> OpResult:
        return self.pointer_up()

    # wheel

    def wheel(self, delta_y: float) -> OpResult:
        if not delta_y:
            return OpResult.noop("no_delta")
        step = -self.wheel_step if delta_y > 0 else self.wheel_step
        return self.canvas.zoom_by(step)

    # explicit item controls

    def press_control(self, item_id: str, action: str, rotation: Optional[float] = None) -> OpResult:
        """Item buttons are hit-tested on their own and never start a drag."""
        if action == "delete":
            res = self.canvas.remove_item(item_id)
            if res.changed and self.state.item_id == item_id:
                self.state = IDLE
            return res
        if action == "bring_to_front":
            return self.canvas.bring_to_front(item_id)
        if action == "rotate":
            if rotation is None:
                return OpResult.noop("missing_rotation", ResultKind.INVARIANT)
            return self.canvas.update_item(item_id, rotation=rotation)
        logger.debug("press_control unknown action=%s", action)
        return OpResult.noop("unknown_action", ResultKind.INVARIANT)

    def handle(self, event: Dict[str, Any]) -> OpResult:
        kind = event.get("type")
        if kind == "pointer_down":
            return self.pointer_down(event["x"], event["y"], event.get("target_item_id"))
        if kind == "pointer_move":
            return self.pointer_move(event["x"], event["y"])
        if kind == "pointer_up":
            return self.pointer_up()
        if kind == "touch_start":
            return self.touch_start(event.get("points") or [])
        if kind == "touch_move":
            return self.touch_move(event.get("points") or [])
        if kind == "touch_end":
            return self.touch_end()
        if kind == "wheel":
            return self.wheel(event.get("delta_y") or 0.0)
        if kind == "control":
            return self.press_control(event["target_item_id"], event["action"], event.get("rotation"))
        logger.debug("gesture unknown event type=%s", kind)
        return OpResult.noop("unknown_event", ResultKind.INVARIANT)
