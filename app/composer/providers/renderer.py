"""Snapshot renderers: in-process Pillow, or a celery worker on the snapshots queue."""
from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.composer.providers.base import ProgressCallback
from app.composer.render import build_composition_data, compose_png, draw_plan
from app.composer.types import RenderResult

logger = logging.getLogger("app.composer.renderer")

IMAGE_FETCH_TIMEOUT_S = 10.0


class SnapshotRenderError(Exception):
    pass


class PillowSnapshotRenderer:
    name = "local"

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.client = client

    async def _fetch(self, client: httpx.AsyncClient, item_ref: str, url: Optional[str]) -> bytes:
        if not url:
            raise SnapshotRenderError(f"no image for item {item_ref}")
        resp = await client.get(url, timeout=IMAGE_FETCH_TIMEOUT_S)
        resp.raise_for_status()
        return resp.content

    async def _fetch_all(self, wanted: Dict[str, Optional[str]]) -> Dict[str, bytes]:
        if self.client is not None:
            blobs = await asyncio.gather(*(self._fetch(self.client, k, u) for k, u in wanted.items()))
        else:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                blobs = await asyncio.gather(*(self._fetch(client, k, u) for k, u in wanted.items()))
        return dict(zip(wanted.keys(), blobs))

    async def render(
        self, mode: str, composition: Dict[str, Any], on_progress: Optional[ProgressCallback] = None
    ) -> RenderResult:
        frame, output, placements = draw_plan(mode, composition)
        assets = composition.get("assets") or {}
        wanted = {p["item_ref"]: assets.get(p["item_ref"]) for p in placements}
        images = await asyncio.wait_for(self._fetch_all(wanted), timeout=settings.COMPOSER_SNAPSHOT_TIMEOUT_S)
        if on_progress:
            on_progress(50)

        loop = asyncio.get_running_loop()

        def _tick(pct: int) -> None:
            if on_progress:
                loop.call_soon_threadsafe(on_progress, 50 + pct // 2)

        png, width, height = await asyncio.to_thread(compose_png, frame, output, placements, images, _tick)
        if on_progress:
            on_progress(100)
        return RenderResult(
            image_bytes=png,
            derived_composition=build_composition_data(mode, composition),
            content_type="image/png",
            width=width,
            height=height,
        )


class CelerySnapshotRenderer:
    """Hands the composition to ``tasks.render_snapshot`` and waits for the PNG."""

    name = "celery"

    def __init__(self, celery_app=None):
        if celery_app is None:
            from workers.celery_app import celery as celery_app
        self.celery = celery_app

    async def render(
        self, mode: str, composition: Dict[str, Any], on_progress: Optional[ProgressCallback] = None
    ) -> RenderResult:
        result = self.celery.send_task("tasks.render_snapshot", args=[mode, composition], queue="snapshots")
        if on_progress:
            on_progress(10)
        out = await asyncio.to_thread(result.get, timeout=settings.COMPOSER_SNAPSHOT_TIMEOUT_S)
        if not out or not out.get("ok"):
            raise SnapshotRenderError((out or {}).get("error") or "render_failed")
        if on_progress:
            on_progress(100)
        return RenderResult(
            image_bytes=base64.b64decode(out["image_b64"]),
            derived_composition=build_composition_data(mode, composition),
            content_type="image/png",
            width=int(out["width"]),
            height=int(out["height"]),
        )


RENDERERS = {"local": PillowSnapshotRenderer, "celery": CelerySnapshotRenderer}


def get_renderer(name: Optional[str] = None):
    name = name or settings.COMPOSER_SNAPSHOT_RENDERER
    if name not in RENDERERS:
        raise ValueError(f"Unknown renderer: {name}")
    return RENDERERS[name]()
