import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from app.auth.deps import get_access_token, get_current_user_id
from app.composer import preferences
from app.core.config import settings
from app.composer.catalog import ItemCatalog
from app.composer.commit import CommitPipeline
from app.composer.errors import CollaboratorFailure, CommitInProgressError, NothingToSaveError
from app.composer.providers import (
    CatalogProvider,
    EmptyCatalog,
    OutfitApi,
    OutfitPersistence,
    R2SnapshotUploader,
    WardrobeApiCatalog,
    get_renderer,
)
from app.composer.providers.wardrobe_api import WardrobeApiError
from app.composer.session import CompositionSession, SessionNotFound, SessionRegistry
from app.schemas.composer import (
    CanvasItemIn,
    CanvasItemPatch,
    CommitOut,
    ConfigurationIn,
    GestureIn,
    LockIn,
    MetadataPatch,
    ModeIn,
    NavigateIn,
    SaveProgressOut,
    SessionCreateIn,
    SessionOut,
    ViewportPatch,
)

router = APIRouter(prefix="/composer/sessions", tags=["composer"])
logger = logging.getLogger("uvicorn.error")

_registry = SessionRegistry()

STAGE_ERRORS = {"generating": "render_failed", "uploading": "upload_failed", "saving": "save_failed"}


def get_registry() -> SessionRegistry:
    return _registry


def get_catalog_provider(token: Optional[str] = Depends(get_access_token)) -> CatalogProvider:
    if not settings.WARDROBE_API_URL:
        return EmptyCatalog()
    return WardrobeApiCatalog(token)


def get_outfit_persistence(token: Optional[str] = Depends(get_access_token)) -> OutfitPersistence:
    return OutfitApi(token)


def get_pipeline(
    user_id: str = Depends(get_current_user_id),
    persistence: OutfitPersistence = Depends(get_outfit_persistence),
) -> CommitPipeline:
    return CommitPipeline(get_renderer(), R2SnapshotUploader(user_id), persistence)


def _session(registry: SessionRegistry, session_id: str, user_id: str) -> CompositionSession:
    try:
        return registry.get(session_id, user_id)
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="session_not_found")


def _out(session: CompositionSession) -> SessionOut:
    return SessionOut.model_validate(session.as_dict())


async def _remember(session: CompositionSession) -> None:
    await preferences.save(session.user_id, session.preferences())


@router.post("", response_model=SessionOut, status_code=201)
async def create_session(
    payload: Optional[SessionCreateIn] = None,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
    provider: CatalogProvider = Depends(get_catalog_provider),
    persistence: OutfitPersistence = Depends(get_outfit_persistence),
):
    payload = payload or SessionCreateIn()
    prefs = await preferences.load(user_id)
    catalog = ItemCatalog()
    await catalog.load(provider, user_id)
    if payload.outfit_id:
        try:
            record = await persistence.fetch_outfit(payload.outfit_id)
        except WardrobeApiError as e:
            if e.status_code == 404:
                raise HTTPException(status_code=404, detail="outfit_not_found")
            logger.warning("outfit fetch failed outfit=%s: %s", payload.outfit_id, e)
            raise HTTPException(status_code=502, detail="outfit_fetch_failed")
        except Exception as e:
            logger.warning("outfit fetch failed outfit=%s: %s", payload.outfit_id, e)
            raise HTTPException(status_code=502, detail="outfit_fetch_failed")
        session = CompositionSession.from_outfit(
            record, catalog, user_id, configuration=prefs["configuration"]
        )
    else:
        session = CompositionSession(
            user_id,
            catalog,
            mode=payload.mode or prefs["mode"],
            configuration=payload.configuration or prefs["configuration"],
            locked=prefs["locked_categories"],
            show_grid=prefs["show_grid"],
            metadata=payload.metadata,
        )
    registry.add(session)
    logger.info("composer session=%s user=%s mode=%s items=%s", session.id, user_id, session.mode.value, len(catalog))
    return _out(session)


@router.get("/{session_id}", response_model=SessionOut)
async def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    return _out(_session(registry, session_id, user_id))


@router.delete("/{session_id}")
async def discard_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    if not registry.discard(session_id, user_id):
        raise HTTPException(status_code=404, detail="session_not_found")
    return {"ok": True}


@router.put("/{session_id}/mode", response_model=SessionOut)
async def set_mode(
    session_id: str,
    payload: ModeIn,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    if session.switch_mode(payload.mode).changed:
        await _remember(session)
    return _out(session)


@router.put("/{session_id}/configuration", response_model=SessionOut)
async def set_configuration(
    session_id: str,
    payload: ConfigurationIn,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    if session.set_configuration(payload.configuration).changed:
        await _remember(session)
    return _out(session)


@router.post("/{session_id}/navigate", response_model=SessionOut)
async def navigate(
    session_id: str,
    payload: NavigateIn,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    session.navigate(payload.category, payload.direction)
    return _out(session)


@router.post("/{session_id}/lock", response_model=SessionOut)
async def toggle_lock(
    session_id: str,
    payload: LockIn,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    if session.toggle_lock(payload.category).changed:
        await _remember(session)
    return _out(session)


@router.post("/{session_id}/shuffle", response_model=SessionOut)
async def shuffle(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    session.shuffle()
    return _out(session)


@router.post("/{session_id}/undo", response_model=SessionOut)
async def undo(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    session.undo()
    return _out(session)


@router.post("/{session_id}/redo", response_model=SessionOut)
async def redo(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    session.redo()
    return _out(session)


@router.post("/{session_id}/canvas/items", response_model=SessionOut, status_code=201)
async def add_canvas_item(
    session_id: str,
    payload: CanvasItemIn,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    size = (payload.width, payload.height) if payload.width and payload.height else None
    session.add_canvas_item(payload.item_id, (payload.x, payload.y), size)
    return _out(session)


@router.patch("/{session_id}/canvas/items/{canvas_id}", response_model=SessionOut)
async def update_canvas_item(
    session_id: str,
    canvas_id: str,
    payload: CanvasItemPatch,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    item = session.spatial.composition.get(canvas_id) if session.spatial else None
    changes: Dict[str, Any] = {}
    if item is not None:
        if payload.x is not None or payload.y is not None:
            changes["position"] = (
                payload.x if payload.x is not None else item.x,
                payload.y if payload.y is not None else item.y,
            )
        if payload.width is not None or payload.height is not None:
            changes["size"] = (
                payload.width if payload.width is not None else item.width,
                payload.height if payload.height is not None else item.height,
            )
    if payload.rotation is not None:
        changes["rotation"] = payload.rotation
    session.update_canvas_item(canvas_id, **changes)
    return _out(session)


@router.delete("/{session_id}/canvas/items/{canvas_id}", response_model=SessionOut)
async def remove_canvas_item(
    session_id: str,
    canvas_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    session.remove_canvas_item(canvas_id)
    return _out(session)


@router.post("/{session_id}/canvas/clear", response_model=SessionOut)
async def clear_canvas(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    session.clear_canvas()
    return _out(session)


@router.post("/{session_id}/canvas/arrange", response_model=SessionOut)
async def arrange_canvas(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    session.arrange_canvas()
    return _out(session)


@router.post("/{session_id}/canvas/grid", response_model=SessionOut)
async def toggle_grid(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    if session.toggle_grid().changed:
        await _remember(session)
    return _out(session)


@router.patch("/{session_id}/canvas/viewport", response_model=SessionOut)
async def set_viewport(
    session_id: str,
    payload: ViewportPatch,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    pan = (payload.pan.x, payload.pan.y) if payload.pan else None
    session.set_viewport(zoom=payload.zoom, pan=pan)
    return _out(session)


@router.post("/{session_id}/canvas/zoom/{action}", response_model=SessionOut)
async def zoom(
    session_id: str,
    action: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    if action not in {"in", "out", "fit"}:
        raise HTTPException(status_code=400, detail="invalid_zoom_action")
    session = _session(registry, session_id, user_id)
    session.zoom(action)
    return _out(session)


@router.post("/{session_id}/gestures", response_model=SessionOut)
async def gesture(
    session_id: str,
    payload: GestureIn,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    event = payload.model_dump(exclude_none=True)
    if payload.type in {"pointer_down", "pointer_move"} and (payload.x is None or payload.y is None):
        raise HTTPException(status_code=400, detail="missing_coordinates")
    if payload.type == "control" and (not payload.target_item_id or not payload.action):
        raise HTTPException(status_code=400, detail="missing_control_target")
    session = _session(registry, session_id, user_id)
    session.handle_gesture(event)
    return _out(session)


@router.patch("/{session_id}/metadata", response_model=SessionOut)
async def update_metadata(
    session_id: str,
    payload: MetadataPatch,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    try:
        session.update_metadata(payload.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    return _out(session)


@router.post("/{session_id}/commit", response_model=CommitOut)
async def commit(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
    pipeline: CommitPipeline = Depends(get_pipeline),
):
    session = _session(registry, session_id, user_id)
    try:
        outcome = await pipeline.commit(session)
    except NothingToSaveError:
        raise HTTPException(status_code=400, detail="nothing_to_save")
    except CommitInProgressError:
        raise HTTPException(status_code=409, detail="commit_in_progress")
    except CollaboratorFailure as e:
        raise HTTPException(status_code=502, detail=STAGE_ERRORS.get(e.stage, "commit_failed"))
    return CommitOut(outfit_id=outcome.outfit_id, preview_url=outcome.preview.url)


@router.get("/{session_id}/progress", response_model=SaveProgressOut)
async def progress(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    registry: SessionRegistry = Depends(get_registry),
):
    session = _session(registry, session_id, user_id)
    return SaveProgressOut(**session.save_progress.as_dict())
