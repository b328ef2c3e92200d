from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Protocol

from app.composer.types import RenderResult, UploadResult
from app.schemas.composer import WardrobeItemRef

ProgressCallback = Callable[[int], None]


class CatalogProvider(Protocol):
    async def fetch_active_items(self, user_id: str) -> List[WardrobeItemRef]:
        ...


class SnapshotRenderer(Protocol):
    async def render(
        self, mode: str, composition: Dict[str, Any], on_progress: Optional[ProgressCallback] = None
    ) -> RenderResult:
        ...


class SnapshotUploader(Protocol):
    async def upload(self, image_bytes: bytes, content_type: str = "image/png") -> UploadResult:
        ...

    async def discard(self, storage_id: str) -> None:
        ...


class OutfitPersistence(Protocol):
    async def create_or_update_outfit(self, payload: Dict[str, Any], outfit_id: Optional[str] = None) -> str:
        ...

    async def fetch_outfit(self, outfit_id: str) -> Dict[str, Any]:
        ...


class EmptyCatalog:
    """Catalog used when no wardrobe service is configured."""

    name = "empty"

    async def fetch_active_items(self, user_id: str) -> List[WardrobeItemRef]:
        return []
