from .celery_app import celery
import base64
import logging

import requests

from app.composer.render import compose_png, draw_plan

logger = logging.getLogger("workers.tasks")

IMAGE_FETCH_TIMEOUT_S = 10


@celery.task(name="tasks.render_snapshot")
def render_snapshot(mode: str, composition: dict) -> dict:
    """Render a composition snapshot and return the PNG base64-encoded."""
    try:
        frame, output, placements = draw_plan(mode, composition)
    except Exception as e:
        return {"ok": False, "error": f"bad_composition:{e}"}
    assets = composition.get("assets") or {}
    images = {}
    for p in placements:
        ref = p["item_ref"]
        url = assets.get(ref)
        if not url:
            return {"ok": False, "error": f"no_image:{ref}"}
        try:
            resp = requests.get(url, timeout=IMAGE_FETCH_TIMEOUT_S)
            resp.raise_for_status()
            images[ref] = resp.content
        except Exception as e:
            return {"ok": False, "error": f"url_fetch_failed:{e}"}
    try:
        png, width, height = compose_png(frame, output, placements, images)
    except Exception as e:
        logger.warning("render_snapshot compose failed: %s", e)
        return {"ok": False, "error": f"compose_failed:{e}"}
    return {"ok": True, "image_b64": base64.b64encode(png).decode(), "width": width, "height": height}
