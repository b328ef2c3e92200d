import asyncio
import logging
from typing import Optional

from app.core.config import settings
from app.composer.types import UploadResult
from app.storage import r2
from app.storage.keys import owns_key, snapshot_key

logger = logging.getLogger("app.composer.uploader")


class R2SnapshotUploader:
    """Stores snapshots under the user's prefix, retrying with linear back-off."""

    name = "r2"

    def __init__(self, user_id: str, retries: Optional[int] = None, delay_s: Optional[float] = None):
        self.user_id = user_id
        self.retries = max(1, retries if retries is not None else settings.COMPOSER_UPLOAD_RETRIES)
        self.delay_s = delay_s if delay_s is not None else settings.COMPOSER_UPLOAD_RETRY_DELAY_S

    async def upload(self, image_bytes: bytes, content_type: str = "image/png") -> UploadResult:
        key = snapshot_key(self.user_id, content_type)
        last: Optional[Exception] = None
        for attempt in range(1, self.retries + 1):
            try:
                url = await asyncio.to_thread(r2.put_object, key, image_bytes, content_type)
                return UploadResult(url=url, storage_id=key)
            except Exception as e:
                last = e
                logger.warning("snapshot upload attempt %s/%s failed key=%s: %s", attempt, self.retries, key, e)
                if attempt < self.retries:
                    await asyncio.sleep(self.delay_s * attempt)
        raise last

    async def discard(self, storage_id: str) -> None:
        if not owns_key(self.user_id, storage_id):
            logger.warning("refusing to delete foreign key=%s user=%s", storage_id, self.user_id)
            return
        await asyncio.to_thread(r2.delete_object, storage_id)
