import uuid

EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}


def snapshot_key(user_id: str, content_type: str = "image/png") -> str:
    ext = EXTENSIONS.get(content_type, "png")
    return f"u/{user_id}/outfits/snapshots/{uuid.uuid4().hex}.{ext}"


def owns_key(user_id: str, key: str) -> bool:
    return key.startswith(f"u/{user_id}/")
