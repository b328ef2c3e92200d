from app.composer.providers.base import (
    CatalogProvider,
    EmptyCatalog,
    OutfitPersistence,
    SnapshotRenderer,
    SnapshotUploader,
)
from app.composer.providers.renderer import CelerySnapshotRenderer, PillowSnapshotRenderer, get_renderer
from app.composer.providers.uploader import R2SnapshotUploader
from app.composer.providers.wardrobe_api import OutfitApi, WardrobeApiCatalog

__all__ = [
    "CatalogProvider",
    "EmptyCatalog",
    "OutfitPersistence",
    "SnapshotRenderer",
    "SnapshotUploader",
    "CelerySnapshotRenderer",
    "PillowSnapshotRenderer",
    "get_renderer",
    "R2SnapshotUploader",
    "OutfitApi",
    "WardrobeApiCatalog",
]
