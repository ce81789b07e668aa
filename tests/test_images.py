import io
from datetime import datetime, timezone

import pytest
from PIL import Image
from sqlalchemy.exc import OperationalError

from conftest import FakeStorage, make_image_bytes
from kjess_api import crud
from kjess_api.errors import ProcessingFailure, RecordCreationFailure, StorageUploadFailure, NotFoundError
from kjess_api.images import ImagePipeline, make_filenames, render_variants, safe_category, upload_with_retry
from kjess_api.schemas import ImageMetadata
from kjess_api.storage import LocalStorage

METADATA = ImageMetadata(
    title="Modern Living Room",
    subcategory="Living Room",
    description="Warm oak and linen with a view of the hills.",
)


def _open(data):
    img = Image.open(io.BytesIO(data))
    return img.format, img.size


def test_renditions_have_fixed_sizes():
    main, thumb = render_variants(make_image_bytes(size=(3000, 500)))
    assert _open(main) == ("WEBP", (1200, 800))
    assert _open(thumb) == ("WEBP", (400, 300))


def test_small_and_transparent_inputs_are_cover_fit():
    buf = io.BytesIO()
    Image.new("RGBA", (50, 80), (0, 0, 0, 0)).save(buf, format="PNG")
    main, thumb = render_variants(buf.getvalue())
    assert _open(main)[1] == (1200, 800)
    assert _open(thumb)[1] == (400, 300)


def test_corrupt_input_is_a_processing_failure():
    with pytest.raises(ProcessingFailure):
        render_variants(b"definitely not an image")


def test_filenames_are_unique_and_distinct():
    names = set()
    for _ in range(50):
        main, thumb = make_filenames()
        assert main != thumb
        assert main.endswith(".webp") and thumb.endswith("_thumb.webp")
        names.update((main, thumb))
    assert len(names) == 100


def test_safe_category():
    assert safe_category("Residential") == "residential"
    assert safe_category("../etc") == "etc"
    assert safe_category("") == "gallery"
    assert safe_category(None) == "gallery"


def test_retry_succeeds_on_third_attempt_with_linear_backoff():
    storage = FakeStorage(fail_plan=[True, True, False, False])
    sleeps = []

    urls = upload_with_retry(storage, "a/main.webp", b"m", "a/thumbnails/t.webp", b"t",
                             max_attempts=3, backoff_seconds=1.0, sleep=sleeps.append)

    assert urls == (storage.public_url("a/main.webp"), storage.public_url("a/thumbnails/t.webp"))
    assert sleeps == [1.0, 2.0]
    assert storage.upload_calls == ["a/main.webp", "a/main.webp", "a/main.webp", "a/thumbnails/t.webp"]


def test_retry_gives_up_after_exactly_three_attempts():
    storage = FakeStorage(fail_plan=[True] * 10)
    sleeps = []

    with pytest.raises(StorageUploadFailure) as exc:
        upload_with_retry(storage, "m", b"m", "t", b"t", max_attempts=3, backoff_seconds=1.0, sleep=sleeps.append)

    assert len(storage.upload_calls) == 3
    assert sleeps == [1.0, 2.0]
    assert "after 3 attempts" in exc.value.detail


def test_thumbnail_failure_retries_the_pair():
    storage = FakeStorage(fail_plan=[False, True, False, False])
    upload_with_retry(storage, "m", b"m", "t", b"t", sleep=lambda s: None)
    assert storage.upload_calls == ["m", "t", "m", "t"]


def test_ingest_creates_record_with_both_urls(db):
    storage = FakeStorage()
    pipeline = ImagePipeline(storage, sleep=lambda s: None)

    upload, record = pipeline.ingest(db, make_image_bytes(), "residential", METADATA, actor="admin")

    assert upload["original_url"] != upload["thumbnail_url"]
    assert record.image_url == upload["original_url"]
    assert record.thumbnail_url == upload["thumbnail_url"]
    assert record.category == "residential"
    main_path, thumb_path = sorted(storage.objects)
    assert main_path.startswith("residential/") and "/thumbnails/" not in main_path
    assert thumb_path.startswith("residential/thumbnails/")


def test_ingest_without_complete_metadata_skips_record(db):
    pipeline = ImagePipeline(FakeStorage(), sleep=lambda s: None)
    upload, record = pipeline.ingest(db, make_image_bytes(), "gallery", ImageMetadata(title="Only a title"))
    assert record is None
    assert upload["filename"].endswith(".webp")
    assert crud.list_gallery_images(db) == []


def test_unknown_category_record_falls_back_to_residential(db):
    pipeline = ImagePipeline(FakeStorage(), sleep=lambda s: None)
    _, record = pipeline.ingest(db, make_image_bytes(), "gallery", METADATA)
    assert record.category == "residential"


def test_upload_failure_leaves_no_record(db):
    storage = FakeStorage(fail_plan=[False, True] * 3)
    sleeps = []
    pipeline = ImagePipeline(storage, sleep=sleeps.append)

    with pytest.raises(StorageUploadFailure) as exc:
        pipeline.ingest(db, make_image_bytes(), "commercial", METADATA)

    assert "_thumb.webp" in exc.value.detail
    assert sleeps == [1.0, 2.0]
    assert crud.list_gallery_images(db) == []


def test_corrupt_input_never_reaches_storage(db):
    storage = FakeStorage()
    pipeline = ImagePipeline(storage)
    with pytest.raises(ProcessingFailure):
        pipeline.ingest(db, b"\x89PNG broken", "residential", METADATA)
    assert storage.upload_calls == []


def test_record_write_failure_is_reported(db, monkeypatch):
    def boom(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(crud, "create_gallery_image", boom)
    storage = FakeStorage()
    pipeline = ImagePipeline(storage)

    with pytest.raises(RecordCreationFailure):
        pipeline.ingest(db, make_image_bytes(), "furniture", METADATA)
    # objects stay behind; nothing rolls them back
    assert len(storage.objects) == 2


def test_local_storage_is_single_attempt(tmp_path, db):
    storage = LocalStorage(str(tmp_path), "/uploads")
    pipeline = ImagePipeline(storage)

    upload, _ = pipeline.ingest(db, make_image_bytes(), "residential")

    assert upload["original_url"].startswith("/uploads/")
    assert upload["thumbnail_url"].startswith("/uploads/thumbnails/")
    assert (tmp_path / upload["filename"]).exists()


def test_delete_image_removes_objects_and_row(db):
    storage = FakeStorage()
    pipeline = ImagePipeline(storage)
    _, record = pipeline.ingest(db, make_image_bytes(), "residential", METADATA)

    pipeline.delete_image(db, record.id, actor="admin")

    assert storage.removed == [record.image_url, record.thumbnail_url]
    assert crud.get_gallery_image(db, record.id) is None


def test_delete_survives_storage_errors(db):
    class Flaky(FakeStorage):
        def remove(self, url):
            raise RuntimeError("bucket unavailable")

    pipeline = ImagePipeline(Flaky())
    _, record = pipeline.ingest(db, make_image_bytes(), "residential", METADATA)
    pipeline.delete_image(db, record.id)
    assert crud.get_gallery_image(db, record.id) is None


def test_delete_missing_image(db):
    with pytest.raises(NotFoundError):
        ImagePipeline(FakeStorage()).delete_image(db, "missing")


def test_filenames_are_stamped_in_utc():
    before = datetime.now(timezone.utc).strftime("%Y%m%d")
    main, _ = make_filenames()
    after = datetime.now(timezone.utc).strftime("%Y%m%d")
    assert main[:8] in (before, after)


def test_record_timestamps_are_naive_utc(db):
    _, record = ImagePipeline(FakeStorage()).ingest(db, make_image_bytes(), "residential", METADATA)
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    assert record.created_at.tzinfo is None
    assert abs((now - record.created_at).total_seconds()) < 60
