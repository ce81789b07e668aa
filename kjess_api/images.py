"""Gallery image ingestion: renditions, naming, upload with retry, metadata record.

Order matters here: bytes go to storage first, the GalleryImage row is written
only after both renditions are committed. A failed row write leaves an orphaned
object behind; that is accepted and only logged.
"""
import io
import logging
import re
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple

from PIL import Image, ImageOps
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, models
from .errors import NotFoundError, ProcessingFailure, RecordCreationFailure, StorageUploadFailure
from .schemas import ImageMetadata
from .storage import StorageError

logger = logging.getLogger(__name__)

IMAGE_DIMENSIONS = {
    "thumbnail": {"width": 400, "height": 300, "quality": 80},
    "gallery": {"width": 1200, "height": 800, "quality": 85},
}
GALLERY_CATEGORIES = ("residential", "commercial", "furniture")
DEFAULT_BUCKET = "gallery"
CONTENT_TYPE = "image/webp"


def render(data: bytes, width: int, height: int, quality: int) -> bytes:
    """Cover-fit ``data`` into width x height around the centre, encoded as WebP."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            img = img.convert("RGBA" if img.mode in ("RGBA", "LA", "P") else "RGB")
            fitted = ImageOps.fit(img, (width, height), method=Image.Resampling.LANCZOS, centering=(0.5, 0.5))
            out = io.BytesIO()
            fitted.save(out, format="WEBP", quality=quality)
            return out.getvalue()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ProcessingFailure(f"could not process image: {e}") from e


def render_variants(data: bytes) -> Tuple[bytes, bytes]:
    """Return (display, thumbnail) renditions; either failing fails both."""
    main, thumb = IMAGE_DIMENSIONS["gallery"], IMAGE_DIMENSIONS["thumbnail"]
    with ThreadPoolExecutor(max_workers=2) as pool:
        main_job = pool.submit(render, data, main["width"], main["height"], main["quality"])
        thumb_job = pool.submit(render, data, thumb["width"], thumb["height"], thumb["quality"])
        return main_job.result(), thumb_job.result()


def make_filenames() -> Tuple[str, str]:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
    return f"{stamp}_{uuid.uuid4().hex}.webp", f"{stamp}_{uuid.uuid4().hex}_thumb.webp"


def safe_category(category: Optional[str]) -> str:
    slug = re.sub(r"[^a-z0-9_-]+", "", (category or "").strip().lower())
    return slug or DEFAULT_BUCKET


def upload_with_retry(storage, main_path: str, main_bytes: bytes, thumb_path: str, thumb_bytes: bytes,
                      max_attempts: int = 3, backoff_seconds: float = 1.0,
                      sleep: Callable[[float], None] = time.sleep) -> Tuple[str, str]:
    """Upload both objects as one attempt, retrying the pair with linear backoff."""
    last_error: Optional[Exception] = None
    for attempt in range(1, max_attempts + 1):
        try:
            storage.upload(main_path, main_bytes, CONTENT_TYPE)
            storage.upload(thumb_path, thumb_bytes, CONTENT_TYPE)
            return storage.public_url(main_path), storage.public_url(thumb_path)
        except (StorageError, OSError) as e:
            last_error = e
            logger.warning("Upload attempt %d/%d failed for %s: %s", attempt, max_attempts, main_path, e)
            if attempt < max_attempts:
                sleep(attempt * backoff_seconds)
    raise StorageUploadFailure(f"upload failed after {max_attempts} attempts: {last_error}")


class ImagePipeline:
    def __init__(self, storage, max_attempts: int = 3, backoff_seconds: float = 1.0,
                 sleep: Callable[[float], None] = time.sleep):
        self.storage = storage
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    def _paths(self, category: str, filename: str, thumb_name: str) -> Tuple[str, str]:
        if getattr(self.storage, "per_category", True):
            return f"{category}/{filename}", f"{category}/thumbnails/{thumb_name}"
        return filename, f"thumbnails/{thumb_name}"

    def process_and_upload(self, data: bytes, category: str = DEFAULT_BUCKET) -> Dict[str, str]:
        category = safe_category(category)
        main_bytes, thumb_bytes = render_variants(data)
        filename, thumb_name = make_filenames()
        main_path, thumb_path = self._paths(category, filename, thumb_name)

        attempts = self.max_attempts if self.storage.retryable else 1
        original_url, thumbnail_url = upload_with_retry(
            self.storage, main_path, main_bytes, thumb_path, thumb_bytes,
            max_attempts=attempts, backoff_seconds=self.backoff_seconds, sleep=self.sleep,
        )
        logger.info("Uploaded %s (%s) to %s storage", filename, category, self.storage.name)
        return {"original_url": original_url, "thumbnail_url": thumbnail_url, "filename": filename}

    def ingest(self, db: Session, data: bytes, category: str = DEFAULT_BUCKET,
               metadata: Optional[ImageMetadata] = None, actor: str = "system") -> Tuple[Dict[str, str], Optional[models.GalleryImage]]:
        upload = self.process_and_upload(data, category)
        if metadata is None or not metadata.complete:
            return upload, None

        record_category = safe_category(category)
        record_category = record_category if record_category in GALLERY_CATEGORIES else "residential"
        try:
            image = crud.create_gallery_image(
                db,
                title=metadata.title,
                category=record_category,
                subcategory=metadata.subcategory,
                description=metadata.description,
                image_url=upload["original_url"],
                thumbnail_url=upload["thumbnail_url"],
                project_date=metadata.project_date,
                location=metadata.location,
                featured=metadata.featured,
            )
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Gallery record not created; orphaned objects %s, %s: %s",
                         upload["original_url"], upload["thumbnail_url"], e)
            raise RecordCreationFailure(f"image uploaded but gallery record failed: {e}") from e
        logger.info("Gallery image %s created by %s", image.id, actor)
        return upload, image

    def delete_image(self, db: Session, image_id: str, actor: str = "system") -> None:
        image = crud.get_gallery_image(db, image_id)
        if not image:
            raise NotFoundError(message="Image not found")

        for url in (image.image_url, image.thumbnail_url):
            if not url:
                continue
            try:
                if not self.storage.remove(url):
                    logger.warning("Storage cleanup failed for image %s: %s", image_id, url)
            except Exception:
                logger.exception("Storage cleanup raised for image %s: %s", image_id, url)

        crud.delete_gallery_image(db, image_id)
        logger.info("Deleted gallery image %s (by %s)", image_id, actor)
