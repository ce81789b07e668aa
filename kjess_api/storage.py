"""Object storage for processed gallery images.

Two interchangeable backends share the same three calls: ``upload``,
``public_url`` and ``remove``. ``build_storage`` picks one at startup from the
settings; the pipeline never reaches for a global client.
"""
import logging
import os
from typing import Optional

import requests

from .config import Settings

logger = logging.getLogger(__name__)

MAX_OBJECT_BYTES = 10 * 1024 * 1024


class StorageError(Exception):
    pass


class SupabaseStorage:
    """Supabase Storage over its REST API (``/storage/v1``)."""

    name = "supabase"
    retryable = True
    per_category = True

    def __init__(self, base_url: str, api_key: str, bucket: str = "gallery-images",
                 timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.timeout = timeout
        self.http = session or requests.Session()
        self.http.headers.update({
            "Authorization": f"Bearer {api_key}",
            "apikey": api_key,
        })

    @property
    def public_prefix(self) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/"

    def upload(self, path: str, data: bytes, content_type: str = "image/webp") -> str:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"
        try:
            r = self.http.post(
                url,
                data=data,
                headers={"Content-Type": content_type, "x-upsert": "true"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(f"upload of {path} failed: {e}") from e
        if r.status_code >= 400:
            raise StorageError(f"upload of {path} failed: HTTP {r.status_code} {r.text[:200]}")
        return path

    def public_url(self, path: str) -> str:
        return self.public_prefix + path

    def path_from_url(self, url: str) -> Optional[str]:
        parts = url.split(f"/storage/v1/object/public/{self.bucket}/")
        if len(parts) != 2 or not parts[1]:
            return None
        return parts[1]

    def remove(self, url: str) -> bool:
        path = self.path_from_url(url)
        if path is None:
            logger.warning("Not a %s object URL, skipping delete: %s", self.bucket, url)
            return False
        try:
            r = self.http.delete(
                f"{self.base_url}/storage/v1/object/{self.bucket}",
                json={"prefixes": [path]},
                timeout=self.timeout,
            )
        except requests.RequestException:
            logger.exception("Image deletion error for %s", path)
            return False
        if r.status_code >= 400:
            logger.warning("Image deletion failed for %s: HTTP %s", path, r.status_code)
            return False
        return True

    def ensure_bucket(self) -> None:
        """Create the public bucket on first start. Never fatal."""
        try:
            r = self.http.get(f"{self.base_url}/storage/v1/bucket", timeout=self.timeout)
            if r.status_code >= 400:
                logger.warning("Could not list storage buckets: HTTP %s", r.status_code)
                return
            if any(b.get("name") == self.bucket for b in r.json() or []):
                return
            r = self.http.post(
                f"{self.base_url}/storage/v1/bucket",
                json={
                    "id": self.bucket,
                    "name": self.bucket,
                    "public": True,
                    "allowed_mime_types": ["image/*"],
                    "file_size_limit": MAX_OBJECT_BYTES,
                },
                timeout=self.timeout,
            )
            if r.status_code >= 400:
                logger.warning("Could not create storage bucket: HTTP %s %s", r.status_code, r.text[:200])
            else:
                logger.info("Storage bucket %s created", self.bucket)
        except (requests.RequestException, ValueError) as e:
            logger.warning("Storage initialization error: %s", e)


class LocalStorage:
    """Filesystem fallback used when no cloud bucket is configured."""

    name = "local"
    retryable = False
    per_category = False

    def __init__(self, root: str = "uploads", url_prefix: str = "/uploads"):
        self.root = root
        self.url_prefix = url_prefix.rstrip("/")

    def upload(self, path: str, data: bytes, content_type: str = "image/webp") -> str:
        dest = os.path.join(self.root, *path.split("/"))
        os.makedirs(os.path.dirname(dest), exist_ok=True)
        with open(dest, "wb") as f:
            f.write(data)
        return path

    def public_url(self, path: str) -> str:
        return f"{self.url_prefix}/{path}"

    def remove(self, url: str) -> bool:
        logger.info("Image deletion skipped - cloud storage not configured (%s)", url)
        return True

    def ensure_bucket(self) -> None:
        os.makedirs(os.path.join(self.root, "thumbnails"), exist_ok=True)


def build_storage(settings: Settings):
    if settings.supabase_enabled:
        logger.info("Using Supabase storage bucket %s", settings.storage_bucket)
        return SupabaseStorage(
            settings.supabase_url,
            settings.supabase_key,
            bucket=settings.storage_bucket,
            timeout=settings.storage_timeout_seconds,
        )
    logger.info("Supabase configuration not provided. Image uploads will use local storage in %s", settings.upload_dir)
    return LocalStorage(settings.upload_dir, settings.upload_url_prefix)
