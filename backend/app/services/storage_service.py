"""Hosted object storage client for menu images."""

import logging
import secrets
import string
import time
from typing import Optional

import httpx

from app.core.config import Settings, settings
from app.core.exceptions import NotConfigured, UpstreamError, ValidationFailed

logger = logging.getLogger(__name__)

# Stored objects take the extension of their content type
ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif"}

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


class StorageService:
    """Uploads objects to a bucket and resolves their public URLs."""

    def __init__(
        self,
        base_url: str = "",
        service_key: str = "",
        bucket: str = "menu-images",
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, config: Settings) -> "StorageService":
        return cls(
            base_url=config.storage_url,
            service_key=config.storage_service_key,
            bucket=config.storage_bucket,
            timeout=config.storage_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.service_key)

    def public_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path.lstrip('/')}"

    @staticmethod
    def object_path(ext: str) -> str:
        """``menu-items/<millis>-<random>.<ext>``."""
        suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(12))
        return f"menu-items/{int(time.time() * 1000)}-{suffix}.{ext}"

    def upload_image(self, filename: str, content: bytes, content_type: Optional[str]) -> str:
        """Upload an image and return its public URL."""
        if not self.is_configured:
            raise NotConfigured("Image storage is not configured")

        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if (content_type or "") not in ALLOWED_IMAGE_TYPES or ext not in ALLOWED_EXTENSIONS:
            raise ValidationFailed(
                f"Unsupported file type: {content_type}. Upload JPEG, PNG, WEBP or GIF."
            )
        if not content:
            raise ValidationFailed("Empty file uploaded")
        max_bytes = settings.max_upload_size_mb * 1024 * 1024
        if len(content) > max_bytes:
            raise ValidationFailed(f"File too large. Maximum size is {settings.max_upload_size_mb} MB")

        path = self.object_path(ALLOWED_IMAGE_TYPES[content_type])
        logger.info(f"Uploading {filename} ({len(content)} bytes) to {self.bucket}/{path}")
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/storage/v1/object/{self.bucket}/{path}",
                    content=content,
                    headers={
                        "Authorization": f"Bearer {self.service_key}",
                        "Content-Type": content_type or "application/octet-stream",
                        "Cache-Control": "3600",
                        "x-upsert": "true",
                    },
                )
        except httpx.HTTPError as e:
            logger.error(f"Storage upload failed for {path}: {e}")
            raise UpstreamError("Image upload failed") from e

        if response.status_code not in (200, 201):
            logger.error(f"Storage rejected {path}: {response.status_code} {response.text[:300]}")
            raise UpstreamError("Image upload failed")

        return self.public_url(path)


def get_storage_service() -> StorageService:
    """FastAPI dependency building the storage client from settings."""
    return StorageService.from_settings(settings)
