"""httpx clients for the wardrobe service that owns items and outfits."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from app.core.config import settings
from app.schemas.composer import WardrobeItemRef

logger = logging.getLogger("app.composer.wardrobe_api")

PAGE_SIZE = 100
MAX_PAGES = 50

WIRE_MODE = {"slot": "dress-me", "spatial": "canvas"}


class WardrobeApiError(Exception):
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"{status_code}: {message}")


def _auth_headers(token: Optional[str]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


def _data(resp: httpx.Response) -> Any:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if resp.status_code >= 400:
        err = body.get("error") if isinstance(body, dict) else None
        msg = (err or {}).get("message") if isinstance(err, dict) else (err or resp.reason_phrase)
        raise WardrobeApiError(resp.status_code, str(msg or "request_failed"))
    return body.get("data") if isinstance(body, dict) else None


def item_from_wire(raw: Dict[str, Any]) -> WardrobeItemRef:
    meta = raw.get("metadata") or {}
    image = raw.get("imageId") if isinstance(raw.get("imageId"), dict) else {}
    return WardrobeItemRef(
        id=str(raw.get("id") or raw.get("_id")),
        category=raw.get("category") or meta.get("category") or "",
        name=raw.get("name") or meta.get("name"),
        status=raw.get("status") or "active",
        thumbnail_url=raw.get("thumbnailUrl") or image.get("thumbnailUrl") or None,
        optimized_url=raw.get("optimizedUrl") or image.get("optimizedUrl") or None,
        original_url=raw.get("originalUrl") or image.get("originalUrl") or None,
    )


def outfit_to_wire(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a commit payload into the wardrobe service's outfit body."""
    meta = dict(payload.get("metadata") or {})
    body: Dict[str, Any] = {"mode": WIRE_MODE[payload["mode"]], "metadata": meta}
    slot = payload.get("slot_composition")
    if slot:
        body["combination"] = {
            "configuration": slot["configuration"],
            "items": {c: i for c, i in (slot.get("items") or {}).items() if i},
        }
    spatial = payload.get("spatial_composition")
    if spatial:
        body["canvasState"] = {
            "items": [
                {
                    "clothItemId": it["item_ref"],
                    "position": it["position"],
                    "size": it["size"],
                    "rotation": it["rotation"],
                    "zIndex": it["z_index"],
                }
                for it in spatial.get("items") or []
            ],
            "viewport": spatial.get("viewport"),
        }
    preview = payload.get("preview_image")
    if preview:
        derived = payload.get("derived_composition") or {}
        body["previewImage"] = {
            "url": preview["url"],
            "publicId": preview["storage_id"],
            "width": preview["width"],
            "height": preview["height"],
            "generatedAt": preview["generated_at"],
            "checksum": derived.get("checksum"),
        }
    if payload.get("derived_composition") is not None:
        body["composition"] = payload["derived_composition"]
    return body


class WardrobeApiCatalog:
    """Loads the caller's active items, following pagination."""

    name = "wardrobe_api"

    def __init__(self, token: Optional[str], client: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None):
        self.token = token
        self.client = client
        self.base_url = (base_url or settings.WARDROBE_API_URL).rstrip("/")

    async def fetch_active_items(self, user_id: str) -> List[WardrobeItemRef]:
        items: List[WardrobeItemRef] = []
        async with _client(self.client) as client:
            for page in range(1, MAX_PAGES + 1):
                resp = await client.get(
                    f"{self.base_url}/api/wardrobe",
                    params={"status": "active", "page": page, "limit": PAGE_SIZE},
                    headers=_auth_headers(self.token),
                )
                data = _data(resp) or {}
                for raw in data.get("items") or []:
                    items.append(item_from_wire(raw))
                if not (data.get("pagination") or {}).get("hasNext"):
                    break
            else:
                logger.warning("catalog truncated at %s pages user=%s", MAX_PAGES, user_id)
        return items


class OutfitApi:
    name = "wardrobe_api"

    def __init__(self, token: Optional[str], client: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None):
        self.token = token
        self.client = client
        self.base_url = (base_url or settings.WARDROBE_API_URL).rstrip("/")

    async def create_or_update_outfit(self, payload: Dict[str, Any], outfit_id: Optional[str] = None) -> str:
        body = outfit_to_wire(payload)
        async with _client(self.client) as client:
            if outfit_id:
                resp = await client.patch(
                    f"{self.base_url}/api/outfits/{outfit_id}", json=body, headers=_auth_headers(self.token)
                )
            else:
                resp = await client.post(f"{self.base_url}/api/outfits", json=body, headers=_auth_headers(self.token))
        data = _data(resp) or {}
        outfit = data.get("outfit", data) if isinstance(data, dict) else {}
        new_id = outfit.get("_id") or outfit.get("id") or outfit_id
        if not new_id:
            raise WardrobeApiError(resp.status_code, "no outfit id in response")
        return str(new_id)

    async def fetch_outfit(self, outfit_id: str) -> Dict[str, Any]:
        async with _client(self.client) as client:
            resp = await client.get(f"{self.base_url}/api/outfits/{outfit_id}", headers=_auth_headers(self.token))
        data = _data(resp)
        if not isinstance(data, dict):
            raise WardrobeApiError(resp.status_code, "malformed outfit response")
        return data.get("outfit", data)


class _client:
    """Use the injected client as-is, or open a short-lived one."""

    def __init__(self, client: Optional[httpx.AsyncClient]):
        self._given = client
        self._owned: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> httpx.AsyncClient:
        if self._given is not None:
            return self._given
        self._owned = httpx.AsyncClient(timeout=settings.WARDROBE_API_TIMEOUT_S)
        return self._owned

    async def __aexit__(self, *exc) -> None:
        if self._owned is not None:
            await self._owned.aclose()
