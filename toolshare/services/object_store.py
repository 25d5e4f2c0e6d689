"""
Object store adapter for listing images.
Uploads return a stable URL; deletes are best-effort and never raise.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
import aiofiles
import aiofiles.os
import logging
import uuid

from toolshare.config import settings
from toolshare.utils.exceptions import ObjectStoreError

logger = logging.getLogger(__name__)


class ObjectStore(ABC):
    """Blob storage with no transactional relationship to the database."""

    @abstractmethod
    async def upload(self, data: bytes, content_type: str) -> str:
        """
        Store a blob.

        Returns:
            URL of the stored blob

        Raises:
            ObjectStoreError: If the blob could not be stored
        """

    @abstractmethod
    async def delete(self, url: str) -> bool:
        """
        Remove a blob by URL.

        Returns:
            True if the blob was removed or was already absent, False on failure
        """


class LocalObjectStore(ObjectStore):
    """
    Filesystem-backed store.
    Blobs live under ``upload_dir`` and are served from ``media_base_url``.
    """

    EXTENSIONS = {
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "image/webp": ".webp",
    }

    def __init__(self, upload_dir: Optional[str] = None, base_url: Optional[str] = None):
        self.upload_dir = Path(upload_dir or settings.upload_dir)
        self.base_url = base_url or settings.media_base_url
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    async def upload(self, data: bytes, content_type: str) -> str:
        key = f"{uuid.uuid4().hex}{self.EXTENSIONS.get(content_type, '')}"
        path = self.upload_dir / key
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error(f"Failed to store blob {key}: {e}")
            raise ObjectStoreError(str(e))

        logger.debug(f"Stored blob {key} ({len(data)} bytes)")
        return self.base_url + key

    async def delete(self, url: str) -> bool:
        path = self._path_for(url)
        if path is None:
            logger.warning(f"Refusing to delete blob outside the store: {url}")
            return False
        try:
            await aiofiles.os.remove(path)
            logger.debug(f"Deleted blob {path.name}")
        except FileNotFoundError:
            logger.debug(f"Blob already absent: {url}")
        except OSError as e:
            logger.warning(f"Failed to delete blob {url}: {e}")
            return False
        return True

    def _path_for(self, url: str) -> Optional[Path]:
        if not url.startswith(self.base_url):
            return None
        key = url[len(self.base_url):]
        if not key or "/" in key or "\\" in key or key.startswith("."):
            return None
        return self.upload_dir / key


async def delete_blobs(store: ObjectStore, urls, reason: str) -> int:
    """
    Attempt one delete per URL.

    Failures are logged and swallowed; they only leak storage.

    Returns:
        Number of blobs that could not be deleted
    """
    failures = 0
    for url in urls:
        try:
            ok = await store.delete(url)
        except Exception as e:
            logger.warning(f"Blob cleanup ({reason}) raised for {url}: {e}")
            ok = False
        if not ok:
            failures += 1
    if failures:
        logger.warning(f"Blob cleanup ({reason}) left {failures} orphaned blob(s)")
    return failures
