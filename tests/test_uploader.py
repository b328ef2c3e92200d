import pytest

from app.composer.providers.uploader import R2SnapshotUploader
from app.storage import r2


@pytest.mark.asyncio
async def test_upload_retries_then_succeeds(monkeypatch):
    attempts = []

    def flaky_put(key, data, content_type):
        attempts.append(key)
        if len(attempts) < 3:
            raise ConnectionError("timeout")
        return f"https://cdn.example.com/{key}"

    monkeypatch.setattr(r2, "put_object", flaky_put)
    res = await R2SnapshotUploader("u1", retries=3, delay_s=0).upload(b"png")
    assert len(attempts) == 3
    assert len(set(attempts)) == 1
    assert res.storage_id.startswith("u/u1/outfits/snapshots/")
    assert res.url.endswith(res.storage_id)


@pytest.mark.asyncio
async def test_upload_gives_up_after_retries(monkeypatch):
    calls = []

    def broken_put(key, data, content_type):
        calls.append(key)
        raise ConnectionError("r2 down")

    monkeypatch.setattr(r2, "put_object", broken_put)
    with pytest.raises(ConnectionError):
        await R2SnapshotUploader("u1", retries=2, delay_s=0).upload(b"png")
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_discard_only_touches_own_prefix(monkeypatch):
    deleted = []
    monkeypatch.setattr(r2, "delete_object", lambda key: deleted.append(key))
    up = R2SnapshotUploader("u1", retries=1, delay_s=0)
    await up.discard("u/u2/outfits/snapshots/x.png")
    await up.discard("u/u1/outfits/snapshots/y.png")
    assert deleted == ["u/u1/outfits/snapshots/y.png"]
