import pytest
import requests

from conftest import make_settings
from kjess_api.storage import LocalStorage, StorageError, SupabaseStorage, build_storage

BASE = "https://proj.supabase.co"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses=None, error=None):
        self.headers = {}
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0) if self.responses else FakeResponse()

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def delete(self, url, **kwargs):
        return self._next("DELETE", url, **kwargs)


def _storage(session):
    return SupabaseStorage(BASE + "/", "anon-key", bucket="gallery-images", timeout=5, session=session)


def test_upload_posts_object_with_upsert():
    session = FakeSession()
    storage = _storage(session)

    storage.upload("residential/a.webp", b"data")

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == f"{BASE}/storage/v1/object/gallery-images/residential/a.webp"
    assert kwargs["headers"]["x-upsert"] == "true"
    assert kwargs["headers"]["Content-Type"] == "image/webp"
    assert session.headers["apikey"] == "anon-key"
    assert session.headers["Authorization"] == "Bearer anon-key"


def test_upload_http_error_raises_storage_error():
    storage = _storage(FakeSession([FakeResponse(500, text="boom")]))
    with pytest.raises(StorageError):
        storage.upload("a.webp", b"data")


def test_upload_network_error_raises_storage_error():
    storage = _storage(FakeSession(error=requests.ConnectionError("refused")))
    with pytest.raises(StorageError):
        storage.upload("a.webp", b"data")


def test_public_url_and_path_round_trip():
    storage = _storage(FakeSession())
    url = storage.public_url("commercial/thumbnails/b_thumb.webp")
    assert url == f"{BASE}/storage/v1/object/public/gallery-images/commercial/thumbnails/b_thumb.webp"
    assert storage.path_from_url(url) == "commercial/thumbnails/b_thumb.webp"
    assert storage.path_from_url("/uploads/b.webp") is None


def test_remove_sends_prefix():
    session = FakeSession()
    storage = _storage(session)

    assert storage.remove(storage.public_url("residential/a.webp")) is True

    method, url, kwargs = session.calls[0]
    assert method == "DELETE"
    assert url == f"{BASE}/storage/v1/object/gallery-images"
    assert kwargs["json"] == {"prefixes": ["residential/a.webp"]}


def test_remove_reports_failures_without_raising():
    storage = _storage(FakeSession([FakeResponse(404)]))
    assert storage.remove(storage.public_url("x.webp")) is False

    storage = _storage(FakeSession(error=requests.Timeout("slow")))
    assert storage.remove(storage.public_url("x.webp")) is False

    session = FakeSession()
    assert _storage(session).remove("https://elsewhere.test/x.webp") is False
    assert session.calls == []


def test_ensure_bucket_creates_missing_bucket():
    session = FakeSession([FakeResponse(200, payload=[{"name": "other"}]), FakeResponse(200)])
    _storage(session).ensure_bucket()

    method, url, kwargs = session.calls[1]
    assert (method, url) == ("POST", f"{BASE}/storage/v1/bucket")
    assert kwargs["json"]["public"] is True
    assert kwargs["json"]["name"] == "gallery-images"


def test_ensure_bucket_is_never_fatal():
    session = FakeSession([FakeResponse(200, payload=[{"name": "gallery-images"}])])
    _storage(session).ensure_bucket()
    assert len(session.calls) == 1

    _storage(FakeSession(error=requests.ConnectionError("down"))).ensure_bucket()
    _storage(FakeSession([FakeResponse(401)])).ensure_bucket()


def test_local_storage_writes_files(tmp_path):
    storage = LocalStorage(str(tmp_path), "/uploads/")
    storage.upload("thumbnails/t.webp", b"thumb")

    assert (tmp_path / "thumbnails" / "t.webp").read_bytes() == b"thumb"
    assert storage.public_url("thumbnails/t.webp") == "/uploads/thumbnails/t.webp"
    assert storage.remove("/uploads/thumbnails/t.webp") is True


def test_build_storage_selects_backend(tmp_path):
    assert isinstance(build_storage(make_settings(tmp_path)), LocalStorage)

    cloud = build_storage(make_settings(tmp_path, SUPABASE_URL=BASE, SUPABASE_ANON_KEY="anon-key"))
    assert isinstance(cloud, SupabaseStorage)
    assert cloud.bucket == "gallery-images"
