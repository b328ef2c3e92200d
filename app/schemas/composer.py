from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal, Any, Dict

from app.core.tags import MAX_TAGS, clamp_seasons, normalize_many

Category = Literal["tops", "bottoms", "dresses", "outerwear", "footwear", "accessories"]
Configuration = Literal["2-part", "3-part", "4-part"]
Mode = Literal["slot", "spatial"]
Season = Literal["spring", "summer", "autumn", "winter"]


class WardrobeItemRef(BaseModel):
    model_config = {"frozen": True}

    id: str
    category: str
    name: Optional[str] = None
    status: str = "active"
    thumbnail_url: Optional[str] = None
    optimized_url: Optional[str] = None
    original_url: Optional[str] = None

    @property
    def display_url(self) -> Optional[str]:
        return self.optimized_url or self.thumbnail_url or self.original_url


class OutfitMetadata(BaseModel):
    name: str = Field(default="Untitled Outfit", max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    tags: List[str] = Field(default_factory=list)
    occasion: Optional[str] = None
    season: List[Season] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "Untitled Outfit"
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, v: Any) -> Any:
        if v is None:
            return []
        cleaned = normalize_many(t for t in v if isinstance(t, str) and t.strip())
        if len(cleaned) > MAX_TAGS:
            raise ValueError("too_many_tags")
        return cleaned

    @field_validator("season", mode="before")
    @classmethod
    def _clean_season(cls, v: Any) -> Any:
        if v is None:
            return []
        return clamp_seasons(v)


class Point(BaseModel):
    x: float = 0.0
    y: float = 0.0


class Size(BaseModel):
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class CanvasItemOut(BaseModel):
    id: str
    item_ref: str
    position: Point
    size: Size
    rotation: float = Field(ge=0, lt=360)
    z_index: int


class ViewportOut(BaseModel):
    zoom: float
    pan: Point


class SlotCompositionPayload(BaseModel):
    configuration: Configuration
    items: Dict[str, Optional[str]]
    locked: List[str] = Field(default_factory=list)


class SpatialCompositionPayload(BaseModel):
    items: List[CanvasItemOut]
    viewport: ViewportOut


class PreviewImage(BaseModel):
    url: str
    storage_id: str
    width: int
    height: int
    generated_at: str


class OutfitPayload(BaseModel):
    mode: Mode
    metadata: OutfitMetadata
    slot_composition: Optional[SlotCompositionPayload] = None
    spatial_composition: Optional[SpatialCompositionPayload] = None
    preview_image: PreviewImage
    derived_composition: Dict[str, Any]


class SaveProgressOut(BaseModel):
    stage: Literal["idle", "validating", "generating", "uploading", "saving"]
    percent: int


# HTTP bodies


class SessionCreateIn(BaseModel):
    mode: Optional[Mode] = None
    configuration: Optional[Configuration] = None
    outfit_id: Optional[str] = None
    metadata: Optional[OutfitMetadata] = None


class MetadataPatch(BaseModel):
    model_config = {"extra": "forbid"}

    name: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    occasion: Optional[str] = None
    season: Optional[List[str]] = None


class ModeIn(BaseModel):
    mode: Mode


class ConfigurationIn(BaseModel):
    configuration: Configuration


class NavigateIn(BaseModel):
    category: Category
    direction: Literal["next", "prev"] = "next"


class LockIn(BaseModel):
    category: Category


class CanvasItemIn(BaseModel):
    item_id: str
    x: float = 0.0
    y: float = 0.0
    width: Optional[float] = Field(default=None, gt=0)
    height: Optional[float] = Field(default=None, gt=0)


class CanvasItemPatch(BaseModel):
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = Field(default=None, gt=0)
    height: Optional[float] = Field(default=None, gt=0)
    rotation: Optional[float] = None


class ViewportPatch(BaseModel):
    zoom: Optional[float] = None
    pan: Optional[Point] = None


class GestureIn(BaseModel):
    type: Literal[
        "pointer_down",
        "pointer_move",
        "pointer_up",
        "touch_start",
        "touch_move",
        "touch_end",
        "wheel",
        "control",
    ]
    x: Optional[float] = None
    y: Optional[float] = None
    target_item_id: Optional[str] = None
    points: Optional[List[Point]] = None
    delta_y: Optional[float] = None
    action: Optional[Literal["delete", "bring_to_front", "rotate"]] = None
    rotation: Optional[float] = None


class OpResultOut(BaseModel):
    changed: bool
    reason: Optional[str] = None
    kind: Optional[str] = None


class SessionOut(BaseModel):
    id: str
    mode: Mode
    metadata: OutfitMetadata
    outfit_id: Optional[str] = None
    preview: Optional[Dict[str, Any]] = None
    catalog_error: Optional[str] = None
    slot: Optional[Dict[str, Any]] = None
    spatial: Optional[Dict[str, Any]] = None
    save_progress: SaveProgressOut
    last_result: Optional[OpResultOut] = None


class CommitOut(BaseModel):
    outfit_id: str
    preview_url: str
