import pytest

from app.storage.keys import owns_key, snapshot_key


class DummyS3:
    def __init__(self):
        self.puts = []
        self.deletes = []

    def put_object(self, **kwargs):
        self.puts.append(kwargs)
        return {"ETag": "dummy"}

    def delete_object(self, **kwargs):
        self.deletes.append(kwargs)
        return {}


def test_object_url_prefers_cdn(monkeypatch):
    monkeypatch.setenv("R2_CDN_BASE", "https://cdn.example.com")
    monkeypatch.setenv("R2_ENDPOINT", "https://r2.example.com")
    monkeypatch.setenv("R2_BUCKET", "bucket")
    from importlib import reload
    import app.storage.r2 as r2

    reload(r2)
    assert r2.object_url("k1") == "https://cdn.example.com/k1"
    monkeypatch.setenv("R2_CDN_BASE", "")
    reload(r2)
    assert r2.object_url("k1") == "https://r2.example.com/bucket/k1"


def test_put_object_sets_content_headers(monkeypatch):
    import app.storage.r2 as r2

    dummy = DummyS3()
    monkeypatch.setattr(r2, "r2_client", lambda: dummy)
    monkeypatch.setattr(r2, "R2_BUCKET", "bucket")
    monkeypatch.setattr(r2, "R2_CDN_BASE", "https://cdn.example.com")
    url = r2.put_object("u/u1/outfits/snapshots/a.png", b"png", "image/png")
    assert url == "https://cdn.example.com/u/u1/outfits/snapshots/a.png"
    sent = dummy.puts[0]
    assert sent["Bucket"] == "bucket"
    assert sent["Key"] == "u/u1/outfits/snapshots/a.png"
    assert sent["ContentType"] == "image/png"
    assert sent["CacheControl"] == r2.SNAPSHOT_CACHE_CONTROL


def test_delete_object(monkeypatch):
    import app.storage.r2 as r2

    dummy = DummyS3()
    monkeypatch.setattr(r2, "r2_client", lambda: dummy)
    r2.delete_object("k2", bucket="other")
    assert dummy.deletes == [{"Bucket": "other", "Key": "k2"}]


@pytest.mark.parametrize(
    "content_type,ext", [("image/png", "png"), ("image/jpeg", "jpg"), ("application/octet-stream", "png")]
)
def test_snapshot_keys_are_user_scoped(content_type, ext):
    key = snapshot_key("u1", content_type)
    assert key.startswith("u/u1/outfits/snapshots/")
    assert key.endswith("." + ext)
    assert owns_key("u1", key)
    assert not owns_key("u2", key)
    assert snapshot_key("u1") != snapshot_key("u1")
