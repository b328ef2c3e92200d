"""Snapshot layout and Pillow compositing shared by the API and the workers.

A render works in two steps. ``draw_plan`` turns a serialized composition into
a frame size and a list of placements in frame coordinates. ``compose_png``
paints the fetched item images onto a transparent frame and scales the result
to the snapshot size for the mode.
"""
import hashlib
import json
import logging
from io import BytesIO
from typing import Any, Callable, Dict, List, Optional, Tuple

from PIL import Image, ImageOps

from app.core.taxonomy import (
    CANVAS_SNAPSHOT_SIZE,
    LAYOUT_PADDING,
    LAYOUT_WIDTH,
    SLOT_SNAPSHOT_SIZE,
    layout_name,
    slot_layout,
)

logger = logging.getLogger("app.composer.render")

CANVAS_PADDING = 20


def composition_checksum(mode: str, composition: Dict[str, Any]) -> str:
    """Stable fingerprint of what a preview shows.

    Slot mode hashes the chosen item per category. Canvas mode hashes item,
    position and rotation, so a resize alone keeps the stored preview.
    """
    if mode == "slot":
        slot = composition.get("slot_composition") or {}
        items = sorted(f"{c}:{i}" for c, i in (slot.get("items") or {}).items() if i)
        body = {"mode": mode, "configuration": slot.get("configuration"), "items": ",".join(items)}
    else:
        spatial = composition.get("spatial_composition") or {}
        items = sorted(
            f"{it['item_ref']}:{it['position']['x']},{it['position']['y']}:{it['rotation']}"
            for it in spatial.get("items") or []
        )
        body = {"mode": mode, "configuration": None, "items": ",".join(items)}
    raw = json.dumps(body, sort_keys=True, separators=(",", ":")).encode()
    return hashlib.sha256(raw).hexdigest()[:16]


def build_composition_data(mode: str, composition: Dict[str, Any]) -> Dict[str, Any]:
    """Layout description stored alongside the outfit."""
    if mode == "slot":
        cfg = (composition.get("slot_composition") or {}).get("configuration")
        return {
            "layout": layout_name(cfg),
            "slot_positions": slot_layout(cfg),
            "render_options": {"background_color": "transparent", "show_borders": False, "padding": LAYOUT_PADDING},
            "checksum": composition_checksum(mode, composition),
        }
    spatial = composition.get("spatial_composition") or {}
    return {
        "layout": "canvas-free",
        "canvas": {
            "items": [
                {
                    "item_ref": it["item_ref"],
                    "position": dict(it["position"]),
                    "size": dict(it["size"]),
                    "rotation": it["rotation"],
                    "z_index": it["z_index"],
                }
                for it in spatial.get("items") or []
            ],
            "viewport": spatial.get("viewport") or {"zoom": 1.0, "pan": {"x": 0.0, "y": 0.0}},
        },
        "render_options": {"background_color": "transparent", "show_borders": False, "padding": CANVAS_PADDING},
        "checksum": composition_checksum(mode, composition),
    }


def draw_plan(mode: str, composition: Dict[str, Any]) -> Tuple[Tuple[int, int], Tuple[int, int], List[dict]]:
    """Return (frame_size, output_size, placements) with placements in paint order."""
    if mode == "slot":
        slot = composition.get("slot_composition") or {}
        layout = slot_layout(slot.get("configuration"))
        placements = []
        for category, box in layout.items():
            ref = (slot.get("items") or {}).get(category)
            if not ref:
                continue
            placements.append({"item_ref": ref, "rotation": 0.0, **box})
        frame_h = max((p["y"] + p["height"] for p in layout.values()), default=0) + LAYOUT_PADDING
        return (LAYOUT_WIDTH, int(frame_h)), SLOT_SNAPSHOT_SIZE, placements

    spatial = composition.get("spatial_composition") or {}
    items = sorted(spatial.get("items") or [], key=lambda it: it["z_index"])
    if not items:
        return CANVAS_SNAPSHOT_SIZE, CANVAS_SNAPSHOT_SIZE, []
    # crop to content
    left = min(it["position"]["x"] for it in items) - CANVAS_PADDING
    top = min(it["position"]["y"] for it in items) - CANVAS_PADDING
    right = max(it["position"]["x"] + it["size"]["width"] for it in items) + CANVAS_PADDING
    bottom = max(it["position"]["y"] + it["size"]["height"] for it in items) + CANVAS_PADDING
    placements = [
        {
            "item_ref": it["item_ref"],
            "x": it["position"]["x"] - left,
            "y": it["position"]["y"] - top,
            "width": it["size"]["width"],
            "height": it["size"]["height"],
            "rotation": it["rotation"],
            "z_index": it["z_index"],
        }
        for it in items
    ]
    return (max(1, int(round(right - left))), max(1, int(round(bottom - top)))), CANVAS_SNAPSHOT_SIZE, placements


def _contain(im: Image.Image, width: int, height: int) -> Image.Image:
    return ImageOps.contain(im, (max(1, width), max(1, height)), Image.LANCZOS)


def compose_png(
    frame_size: Tuple[int, int],
    output_size: Tuple[int, int],
    placements: List[dict],
    images: Dict[str, bytes],
    on_progress: Optional[Callable[[int], None]] = None,
) -> Tuple[bytes, int, int]:
    frame = Image.new("RGBA", frame_size, (0, 0, 0, 0))
    total = len(placements) or 1
    for n, p in enumerate(placements, start=1):
        raw = images.get(p["item_ref"])
        if raw is None:
            logger.warning("snapshot missing image for item=%s", p["item_ref"])
        else:
            im = Image.open(BytesIO(raw)).convert("RGBA")
            im = _contain(im, int(p["width"]), int(p["height"]))
            if p.get("rotation"):
                # CSS rotation is clockwise, PIL's is counter-clockwise
                im = im.rotate(-float(p["rotation"]), expand=True, resample=Image.BICUBIC)
            cx = p["x"] + p["width"] / 2.0
            cy = p["y"] + p["height"] / 2.0
            frame.paste(im, (int(round(cx - im.width / 2.0)), int(round(cy - im.height / 2.0))), im)
        if on_progress:
            on_progress(int(n * 100 / total))

    out = Image.new("RGBA", output_size, (0, 0, 0, 0))
    scaled = _contain(frame, output_size[0], output_size[1]) if frame.size != output_size else frame
    out.paste(scaled, ((output_size[0] - scaled.width) // 2, (output_size[1] - scaled.height) // 2), scaled)
    buf = BytesIO()
    out.save(buf, format="PNG")
    return buf.getvalue(), output_size[0], output_size[1]
