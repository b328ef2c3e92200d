import random

import httpx
import pytest
from asgi_lifespan import LifespanManager

from app.main import app
from app.auth import deps as auth_deps
from app.core import cache
from app.composer.catalog import ItemCatalog
from app.composer.commit import CommitPipeline
from app.composer.providers.wardrobe_api import WardrobeApiError
from app.composer.session import SessionRegistry
from app.composer.types import RenderResult, UploadResult
from app.routers import composer as composer_router
from app.schemas.composer import WardrobeItemRef

API_BASE = "http://test/v1"


def item(item_id: str, category: str, **kw) -> WardrobeItemRef:
    return WardrobeItemRef(
        id=item_id,
        category=category,
        name=kw.pop("name", item_id),
        thumbnail_url=kw.pop("thumbnail_url", f"https://cdn.example.com/{item_id}.png"),
        **kw,
    )


WARDROBE = [
    item("t1", "tops"),
    item("t2", "tops"),
    item("t3", "tops"),
    item("b1", "bottoms"),
    item("b2", "bottoms"),
    item("f1", "footwear"),
    item("d1", "dresses"),
    item("o1", "outerwear"),
    item("o2", "outerwear"),
]


class FakeCatalogProvider:
    def __init__(self, items=None, fail: bool = False):
        self.items = list(WARDROBE if items is None else items)
        self.fail = fail
        self.calls = 0

    async def fetch_active_items(self, user_id):
        self.calls += 1
        if self.fail:
            raise ConnectionError("wardrobe service down")
        return list(self.items)


class FakeRenderer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def render(self, mode, composition, on_progress=None):
        self.calls.append((mode, composition))
        if on_progress:
            on_progress(50)
        if self.fail:
            raise RuntimeError("renderer crashed")
        if on_progress:
            on_progress(100)
        return RenderResult(
            image_bytes=b"\x89PNG fake",
            derived_composition={"layout": "vertical-stack", "checksum": "abc123"},
            content_type="image/png",
            width=900,
            height=1140,
        )


class FakeUploader:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads = []
        self.discarded = []

    async def upload(self, image_bytes, content_type="image/png"):
        if self.fail:
            raise ConnectionError("r2 unreachable")
        key = f"u/test-user/outfits/snapshots/snap{len(self.uploads) + 1}.png"
        self.uploads.append((key, image_bytes, content_type))
        return UploadResult(url=f"https://cdn.example.com/{key}", storage_id=key)

    async def discard(self, storage_id):
        self.discarded.append(storage_id)


class FakePersistence:
    def __init__(self, fail: bool = False, records=None):
        self.fail = fail
        self.records = dict(records or {})
        self.saved = []

    async def create_or_update_outfit(self, payload, outfit_id=None):
        if self.fail:
            raise ConnectionError("save rejected")
        self.saved.append((payload, outfit_id))
        return outfit_id or f"outfit-{len(self.saved)}"

    async def fetch_outfit(self, outfit_id):
        if outfit_id not in self.records:
            raise WardrobeApiError(404, "Outfit not found")
        return self.records[outfit_id]


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttls[key] = ex

    async def delete(self, key):
        self.store.pop(key, None)


@pytest.fixture(autouse=True)
def override_auth():
    app.dependency_overrides[auth_deps.get_current_user_id] = lambda: "test-user"
    app.dependency_overrides[auth_deps.get_access_token] = lambda: "test-token"
    yield
    app.dependency_overrides.pop(auth_deps.get_current_user_id, None)
    app.dependency_overrides.pop(auth_deps.get_access_token, None)


@pytest.fixture(autouse=True)
def fake_redis():
    r = FakeRedis()
    cache.set_redis(r)
    yield r
    cache.set_redis(None)


@pytest.fixture
def catalog():
    return ItemCatalog(WARDROBE)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def fakes():
    return {
        "catalog": FakeCatalogProvider(),
        "renderer": FakeRenderer(),
        "uploader": FakeUploader(),
        "persistence": FakePersistence(),
    }


@pytest.fixture
async def client(fakes):
    registry = SessionRegistry()
    app.dependency_overrides[composer_router.get_registry] = lambda: registry
    app.dependency_overrides[composer_router.get_catalog_provider] = lambda: fakes["catalog"]
    app.dependency_overrides[composer_router.get_outfit_persistence] = lambda: fakes["persistence"]
    app.dependency_overrides[composer_router.get_pipeline] = lambda: CommitPipeline(
        fakes["renderer"], fakes["uploader"], fakes["persistence"]
    )
    async with LifespanManager(app):
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=API_BASE) as ac:
            yield ac
    for dep in (
        composer_router.get_registry,
        composer_router.get_catalog_provider,
        composer_router.get_outfit_persistence,
        composer_router.get_pipeline,
    ):
        app.dependency_overrides.pop(dep, None)
