"""Save a composition session: validate, render, upload, persist."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from app.composer.errors import CollaboratorFailure, CommitInProgressError, NothingToSaveError
from app.composer.providers.base import OutfitPersistence, SnapshotRenderer, SnapshotUploader
from app.composer.session import CompositionSession
from app.composer.types import CommitOutcome, CommitStage, RenderResult, UploadResult
from app.schemas.composer import OutfitPayload

logger = logging.getLogger("app.composer.commit")

ProgressListener = Callable[[CommitStage, int], None]

# generating covers 0-90, uploading sits at 90, saving finishes at 100
GENERATING_SPAN = 90
UPLOADING_PERCENT = 90
SAVING_PERCENT = 95


class CommitPipeline:
    def __init__(
        self,
        renderer: SnapshotRenderer,
        uploader: SnapshotUploader,
        persistence: OutfitPersistence,
    ) -> None:
        self.renderer = renderer
        self.uploader = uploader
        self.persistence = persistence
        self._listeners: List[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def _emit(self, session: CompositionSession, stage: CommitStage, percent: int, extra: Optional[ProgressListener]) -> None:
        session.save_progress.set(stage, percent)
        for fn in (*self._listeners, *((extra,) if extra else ())):
            try:
                fn(session.save_progress.stage, session.save_progress.percent)
            except Exception as e:
                logger.warning("progress listener failed: %s", e)

    async def commit(
        self, session: CompositionSession, on_progress: Optional[ProgressListener] = None
    ) -> CommitOutcome:
        """Run all four stages or none. The session's composition is never modified.

        On success the session records the outfit id so the next commit updates.
        Progress always returns to idle, including on cancellation.
        """
        if not session.save_progress.idle:
            raise CommitInProgressError("a save is already running for this session")
        self._emit(session, CommitStage.VALIDATING, 0, on_progress)
        try:
            if not session.has_content():
                raise NothingToSaveError(
                    "select at least one item" if session.mode.value == "slot" else "add at least one item"
                )
            composition = session.serialize()
            mode = composition["mode"]

            self._emit(session, CommitStage.GENERATING, 0, on_progress)

            def _render_progress(pct: int) -> None:
                self._emit(session, CommitStage.GENERATING, int(pct * GENERATING_SPAN / 100), on_progress)

            try:
                rendered: RenderResult = await self.renderer.render(mode, composition, _render_progress)
            except Exception as e:
                logger.warning("commit session=%s stage=generating failed: %s", session.id, e)
                raise CollaboratorFailure(CommitStage.GENERATING.value, e) from e

            self._emit(session, CommitStage.UPLOADING, UPLOADING_PERCENT, on_progress)
            try:
                uploaded: UploadResult = await self.uploader.upload(rendered.image_bytes, rendered.content_type)
            except Exception as e:
                logger.warning("commit session=%s stage=uploading failed: %s", session.id, e)
                raise CollaboratorFailure(CommitStage.UPLOADING.value, e) from e

            self._emit(session, CommitStage.SAVING, SAVING_PERCENT, on_progress)
            try:
                payload = self._payload(composition, rendered, uploaded)
                outfit_id = await self.persistence.create_or_update_outfit(payload, session.outfit_id)
            except Exception as e:
                logger.warning("commit session=%s stage=saving failed: %s", session.id, e)
                await self._discard_quietly(uploaded.storage_id)
                raise CollaboratorFailure(CommitStage.SAVING.value, e) from e

            self._emit(session, CommitStage.SAVING, 100, on_progress)
            created = session.outfit_id is None
            previous = (session.preview or {}).get("storage_id")
            session.outfit_id = outfit_id
            session.preview = dict(payload["preview_image"], checksum=rendered.derived_composition.get("checksum"))
            if previous and previous != uploaded.storage_id:
                await self._discard_quietly(previous)
            logger.info(
                "commit session=%s outfit=%s mode=%s %s",
                session.id,
                outfit_id,
                mode,
                "created" if created else "updated",
            )
            return CommitOutcome(outfit_id=outfit_id, preview=uploaded, payload=payload)
        finally:
            session.save_progress.reset()
            for fn in (*self._listeners, *((on_progress,) if on_progress else ())):
                try:
                    fn(CommitStage.IDLE, 0)
                except Exception as e:
                    logger.warning("progress listener failed: %s", e)

    async def _discard_quietly(self, storage_id: str) -> None:
        try:
            await self.uploader.discard(storage_id)
        except Exception as e:
            logger.warning("snapshot discard failed storage_id=%s: %s", storage_id, e)

    @staticmethod
    def _payload(composition: Dict[str, Any], rendered: RenderResult, uploaded: UploadResult) -> Dict[str, Any]:
        body = {k: v for k, v in composition.items() if k != "assets"}
        body["preview_image"] = {
            "url": uploaded.url,
            "storage_id": uploaded.storage_id,
            "width": rendered.width,
            "height": rendered.height,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }
        body["derived_composition"] = rendered.derived_composition
        return OutfitPayload.model_validate(body).model_dump(mode="json", exclude_none=True)
