"""Composition sessions and the in-process registry that holds them."""
from __future__ import annotations

import copy
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from app.core.config import settings
from app.core.taxonomy import SlotConfiguration
from app.composer.canvas import CanvasItem, SpatialComposition
from app.composer.catalog import ItemCatalog
from app.composer.gestures import GestureController
from app.composer.history import HistoryStack
from app.composer.slots import SlotComposition, SlotSnapshot
from app.composer.types import Mode, OpResult, ResultKind, SaveProgress
from app.schemas.composer import OutfitMetadata

logger = logging.getLogger("app.composer.session")

# Mode names used by the wardrobe service's outfit records.
WIRE_MODES = {"dress-me": Mode.SLOT, "canvas": Mode.SPATIAL, "slot": Mode.SLOT, "spatial": Mode.SPATIAL}


@dataclass
class SlotState:
    composition: SlotComposition
    history: HistoryStack[SlotSnapshot]
    mode: Mode = field(default=Mode.SLOT, init=False)


@dataclass
class SpatialState:
    composition: SpatialComposition
    gestures: GestureController
    mode: Mode = field(default=Mode.SPATIAL, init=False)


ModeState = Union[SlotState, SpatialState]

WRONG_MODE = OpResult.noop("wrong_mode", ResultKind.INVARIANT)


def _ref_id(value: Any) -> Optional[str]:
    """Outfit records may carry bare ids or populated item documents."""
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("_id") or value.get("id")
    return str(value) if value else None


class CompositionSession:
    def __init__(
        self,
        user_id: str,
        catalog: ItemCatalog,
        *,
        mode: Mode | str = Mode.SLOT,
        configuration: SlotConfiguration | str | None = None,
        locked: Optional[Iterable[str]] = None,
        show_grid: bool = False,
        metadata: Optional[OutfitMetadata] = None,
        outfit_id: Optional[str] = None,
        preview: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.user_id = user_id
        self.catalog = catalog
        self.metadata = metadata or OutfitMetadata()
        self.outfit_id = outfit_id
        self.preview = preview
        self.save_progress = SaveProgress()
        self.last_result: Optional[OpResult] = None
        self.default_configuration = SlotConfiguration(
            configuration or settings.COMPOSER_DEFAULT_CONFIGURATION
        )
        self.touched_at = time.monotonic()
        self.state: ModeState = self._fresh_state(Mode(mode), locked=locked, show_grid=show_grid)

    def _fresh_state(
        self, mode: Mode, *, locked: Optional[Iterable[str]] = None, show_grid: bool = False
    ) -> ModeState:
        if mode is Mode.SLOT:
            comp = SlotComposition(self.catalog, self.default_configuration, locked=locked)
            return SlotState(comp, HistoryStack(comp.snapshot(), limit=settings.COMPOSER_HISTORY_LIMIT))
        canvas = SpatialComposition()
        canvas.show_grid = show_grid
        return SpatialState(canvas, GestureController(canvas))

    def _record(self, result: OpResult) -> OpResult:
        self.last_result = result
        self.touched_at = time.monotonic()
        return result

    @property
    def mode(self) -> Mode:
        return self.state.mode

    @property
    def slot(self) -> Optional[SlotState]:
        return self.state if isinstance(self.state, SlotState) else None

    @property
    def spatial(self) -> Optional[SpatialState]:
        return self.state if isinstance(self.state, SpatialState) else None

    def switch_mode(self, mode: Mode | str) -> OpResult:
        """Replace the mode state with a fresh one. The old composition is discarded."""
        mode = Mode(mode)
        if mode is self.mode:
            return self._record(OpResult.noop("unchanged"))
        self.state = self._fresh_state(mode)
        logger.debug("session=%s mode=%s", self.id, mode.value)
        return self._record(OpResult.ok())

    # slot mode

    def _slot_op(self, fn, *, undoable: bool = True) -> OpResult:
        st = self.slot
        if st is None:
            return self._record(WRONG_MODE)
        res = fn(st.composition)
        if res.changed and undoable:
            st.history.push(st.composition.snapshot())
        return self._record(res)

    def set_configuration(self, configuration: SlotConfiguration | str) -> OpResult:
        return self._slot_op(lambda c: c.set_configuration(configuration))

    def navigate(self, category: str, direction) -> OpResult:
        return self._slot_op(lambda c: c.navigate(category, direction))

    def shuffle(self, rng=None) -> OpResult:
        return self._slot_op(lambda c: c.shuffle(rng))

    def toggle_lock(self, category: str) -> OpResult:
        return self._slot_op(lambda c: c.toggle_lock(category), undoable=settings.COMPOSER_UNDOABLE_LOCKS)

    def undo(self) -> OpResult:
        st = self.slot
        if st is None:
            return self._record(WRONG_MODE)
        snap = st.history.undo()
        if snap is None:
            return self._record(OpResult.noop("nothing_to_undo", ResultKind.USER_RECOVERABLE))
        st.composition.restore(snap, locks=settings.COMPOSER_UNDOABLE_LOCKS)
        return self._record(OpResult.ok())

    def redo(self) -> OpResult:
        st = self.slot
        if st is None:
            return self._record(WRONG_MODE)
        snap = st.history.redo()
        if snap is None:
            return self._record(OpResult.noop("nothing_to_redo", ResultKind.USER_RECOVERABLE))
        st.composition.restore(snap, locks=settings.COMPOSER_UNDOABLE_LOCKS)
        return self._record(OpResult.ok())

    # canvas mode

    def _canvas_op(self, fn) -> OpResult:
        st = self.spatial
        if st is None:
            return self._record(WRONG_MODE)
        return self._record(fn(st.composition))

    def add_canvas_item(
        self,
        item_id: str,
        position: Tuple[float, float] = (0.0, 0.0),
        size: Optional[Tuple[float, float]] = None,
    ) -> Optional[CanvasItem]:
        st = self.spatial
        if st is None:
            self._record(WRONG_MODE)
            return None
        if self.catalog.get(item_id) is None:
            logger.debug("add_canvas_item unknown item=%s session=%s", item_id, self.id)
            self._record(OpResult.noop("unknown_item", ResultKind.INVARIANT))
            return None
        item = st.composition.add_item(item_id, position, size)
        self._record(OpResult.ok())
        return item

    def update_canvas_item(self, canvas_id: str, **changes) -> OpResult:
        return self._canvas_op(lambda c: c.update_item(canvas_id, **changes))

    def remove_canvas_item(self, canvas_id: str) -> OpResult:
        return self._canvas_op(lambda c: c.remove_item(canvas_id))

    def clear_canvas(self) -> OpResult:
        return self._canvas_op(lambda c: c.clear())

    def arrange_canvas(self) -> OpResult:
        return self._canvas_op(lambda c: c.auto_arrange())

    def toggle_grid(self) -> OpResult:
        return self._canvas_op(lambda c: c.toggle_grid())

    def set_viewport(self, *, zoom: Optional[float] = None, pan: Optional[Tuple[float, float]] = None) -> OpResult:
        return self._canvas_op(lambda c: c.set_viewport(zoom=zoom, pan=pan))

    def zoom(self, action: str) -> OpResult:
        ops = {"in": "zoom_in", "out": "zoom_out", "fit": "fit_to_screen"}
        if action not in ops:
            return self._record(OpResult.noop("unknown_action", ResultKind.INVARIANT))
        return self._canvas_op(lambda c: getattr(c, ops[action])())

    def handle_gesture(self, event: Dict[str, Any]) -> OpResult:
        st = self.spatial
        if st is None:
            return self._record(WRONG_MODE)
        return self._record(st.gestures.handle(event))

    # metadata and serialization

    def update_metadata(self, patch: Dict[str, Any]) -> OutfitMetadata:
        data = self.metadata.model_dump()
        data.update(patch)
        self.metadata = OutfitMetadata.model_validate(data)
        self.touched_at = time.monotonic()
        return self.metadata

    def has_content(self) -> bool:
        if self.slot is not None:
            return self.slot.composition.has_selection()
        return bool(self.spatial.composition.items)

    def preferences(self) -> Dict[str, Any]:
        """The builder settings remembered across visits."""
        prefs: Dict[str, Any] = {"mode": self.mode.value}
        if self.slot is not None:
            comp = self.slot.composition
            prefs["configuration"] = comp.configuration.value
            prefs["locked_categories"] = sorted(comp.locked)
        else:
            prefs["configuration"] = self.default_configuration.value
            prefs["show_grid"] = self.spatial.composition.show_grid
        return prefs

    def serialize(self) -> Dict[str, Any]:
        """Detached copy of the active composition, with display URLs for the renderer."""
        out: Dict[str, Any] = {
            "mode": self.mode.value,
            "metadata": self.metadata.model_dump(),
        }
        assets: Dict[str, Optional[str]] = {}
        if self.slot is not None:
            comp = self.slot.composition
            items = comp.selected_item_ids()
            out["slot_composition"] = {
                "configuration": comp.configuration.value,
                "items": items,
                "locked": sorted(comp.locked),
            }
            refs: List[str] = [i for i in items.values() if i]
        else:
            canvas = self.spatial.composition
            data = canvas.as_dict()
            out["spatial_composition"] = {"items": data["items"], "viewport": data["viewport"]}
            refs = [it.item_ref for it in canvas.items]
        for ref in refs:
            item = self.catalog.get(ref)
            assets[ref] = item.display_url if item else None
        out["assets"] = assets
        return copy.deepcopy(out)

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "mode": self.mode.value,
            "metadata": self.metadata.model_dump(),
            "outfit_id": self.outfit_id,
            "preview": self.preview,
            "catalog_error": self.catalog.error,
            "slot": None,
            "spatial": None,
            "save_progress": self.save_progress.as_dict(),
            "last_result": self.last_result.as_dict() if self.last_result else None,
        }
        if self.slot is not None:
            out["slot"] = self.slot.composition.as_dict()
            out["slot"]["can_undo"] = self.slot.history.can_undo()
            out["slot"]["can_redo"] = self.slot.history.can_redo()
        else:
            out["spatial"] = self.spatial.composition.as_dict()
            out["spatial"]["gesture"] = self.spatial.gestures.state.as_dict()
        return out

    @classmethod
    def from_outfit(
        cls, record: Dict[str, Any], catalog: ItemCatalog, user_id: str, **kwargs
    ) -> "CompositionSession":
        """Rebuild a session from a persisted outfit so a commit updates it.

        Accepts the wardrobe service's record shape (``dress-me``/``canvas``
        with ``combination``/``canvasState``) as well as this service's payload
        shape. Items no longer in the catalog are dropped.
        """
        mode = WIRE_MODES.get(str(record.get("mode") or "slot"), Mode.SLOT)
        meta = record.get("metadata") or {}
        outfit_id = _ref_id(record.get("_id") or record.get("id") or record.get("outfit_id"))
        preview = record.get("preview_image") or record.get("previewImage") or None
        if preview:
            preview = dict(preview, storage_id=preview.get("storage_id") or preview.get("publicId"))
        session = cls(
            user_id,
            catalog,
            mode=mode,
            metadata=OutfitMetadata.model_validate(meta),
            outfit_id=outfit_id,
            preview=preview,
            **kwargs,
        )
        if mode is Mode.SLOT:
            combo = record.get("slot_composition") or record.get("combination") or {}
            cfg = SlotConfiguration(combo.get("configuration") or session.default_configuration)
            index: Dict[str, int] = {}
            for category, ref in (combo.get("items") or {}).items():
                ref = _ref_id(ref) if not isinstance(ref, list) else None
                if ref is None:
                    continue
                idx = catalog.index_of(category, ref)
                if idx is None:
                    logger.info("from_outfit dropping missing item=%s category=%s", ref, category)
                    continue
                index[category] = idx
            locked = combo.get("locked") or combo.get("lockedCategories") or []
            comp = SlotComposition(catalog, cfg, index=index, locked=locked)
            session.state = SlotState(comp, HistoryStack(comp.snapshot(), limit=settings.COMPOSER_HISTORY_LIMIT))
        else:
            state = record.get("spatial_composition") or record.get("canvasState") or {}
            kept = []
            for raw in state.get("items") or []:
                raw = dict(raw)
                raw["item_ref"] = _ref_id(raw.get("item_ref") or raw.get("clothItemId"))
                if raw["item_ref"] is None or catalog.get(raw["item_ref"]) is None:
                    logger.info("from_outfit dropping missing canvas item=%s", raw["item_ref"])
                    continue
                kept.append(raw)
            canvas = SpatialComposition.from_dict({"items": kept, "viewport": state.get("viewport") or {}})
            session.state = SpatialState(canvas, GestureController(canvas))
        return session


class SessionNotFound(KeyError):
    pass


class SessionRegistry:
    """Live sessions keyed by id. A session is only visible to its owner."""

    def __init__(self, max_idle_s: float = 3600.0) -> None:
        self._sessions: Dict[str, CompositionSession] = {}
        self.max_idle_s = max_idle_s

    def add(self, session: CompositionSession) -> CompositionSession:
        self.prune()
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str, user_id: str) -> CompositionSession:
        s = self._sessions.get(session_id)
        if s is None or s.user_id != user_id:
            raise SessionNotFound(session_id)
        return s

    def discard(self, session_id: str, user_id: str) -> bool:
        s = self._sessions.get(session_id)
        if s is None or s.user_id != user_id:
            return False
        del self._sessions[session_id]
        return True

    def prune(self) -> int:
        """Drop idle sessions that are not mid-commit."""
        cutoff = time.monotonic() - self.max_idle_s
        stale = [
            sid for sid, s in self._sessions.items() if s.touched_at < cutoff and s.save_progress.idle
        ]
        for sid in stale:
            del self._sessions[sid]
        if stale:
            logger.info("pruned %s idle sessions", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)
