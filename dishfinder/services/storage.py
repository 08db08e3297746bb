"""
Blob storage client for dish photos
"""
import logging
import uuid
from typing import Optional

import httpx

from dishfinder.config import get_settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


class StorageError(Exception):
    pass


class BlobStorageClient:
    def __init__(self, base_url: str, bucket: str, api_key: str = "", timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.api_key = api_key
        self.timeout = timeout

    @property
    def _headers(self):
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    def path_from_url(self, url: str) -> Optional[str]:
        prefix = f"{self.base_url}/storage/v1/object/public/{self.bucket}/"
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None

    async def upload(self, owner_id: int, content: bytes, content_type: str) -> str:
        """Upload bytes and return the public URL"""
        ext = ALLOWED_IMAGE_TYPES.get(content_type)
        if ext is None:
            raise StorageError(f"Unsupported image type '{content_type}'")

        path = f"{owner_id}/{uuid.uuid4().hex}{ext}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/storage/v1/object/{self.bucket}/{path}",
                    content=content,
                    headers={**self._headers, "Content-Type": content_type},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Upload of {path} failed: {e}")
            raise StorageError("Failed to upload image")

        return self.public_url(path)

    async def delete(self, url: str) -> bool:
        """Delete an object we own. Returns False for foreign URLs or failures."""
        path = self.path_from_url(url)
        if path is None:
            return False
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.delete(
                    f"{self.base_url}/storage/v1/object/{self.bucket}/{path}",
                    headers=self._headers,
                )
            if response.status_code == 404:
                logger.warning(f"Image already deleted: {path}")
                return True
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to delete image {path}: {e}")
            return False
        return True


def get_storage() -> BlobStorageClient:
    settings = get_settings()
    return BlobStorageClient(settings.STORAGE_URL, settings.STORAGE_BUCKET, settings.STORAGE_API_KEY)
