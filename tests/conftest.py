import io
import os
import tempfile

# the module-level app in kjess_api.main is built at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_ANON_KEY"] = ""
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="kjess-uploads-")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402

from kjess_api.config import Settings  # noqa: E402
from kjess_api.main import create_app  # noqa: E402
from kjess_api.storage import StorageError  # noqa: E402

ADMIN_PASSWORD = "s3cret-admin"


class FakeResponder:
    """Stands in for the generation backend; records every prompt it gets."""

    def __init__(self, reply="Happy to help with your interior design project!", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def generate(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeStorage:
    """In-memory cloud bucket. ``fail_plan`` holds one bool per upload call."""

    name = "fake"
    retryable = True
    per_category = True

    def __init__(self, fail_plan=None):
        self.fail_plan = list(fail_plan or [])
        self.objects = {}
        self.upload_calls = []
        self.removed = []

    def upload(self, path, data, content_type="image/webp"):
        self.upload_calls.append(path)
        if self.fail_plan and self.fail_plan.pop(0):
            raise StorageError(f"simulated failure for {path}")
        self.objects[path] = data
        return path

    def public_url(self, path):
        return f"https://cdn.example.test/gallery-images/{path}"

    def remove(self, url):
        self.removed.append(url)
        return True

    def ensure_bucket(self):
        pass


def make_image_bytes(fmt="PNG", size=(1600, 1000), color=(180, 120, 90)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


def make_settings(tmp_path, **overrides):
    values = {
        "DATABASE_URL": "sqlite://",
        "SUPABASE_URL": "",
        "SUPABASE_ANON_KEY": "",
        "UPLOAD_DIR": str(tmp_path / "uploads"),
        "UPLOAD_BACKOFF_SECONDS": 0.0,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "JWT_SECRET_KEY": "test-secret",
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def responder():
    return FakeResponder()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def app(settings, responder, storage):
    return create_app(settings, responder=responder, storage=storage)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin_headers(client):
    r = client.post("/api/admin/login", json={"password": ADMIN_PASSWORD})
    assert r.status_code == 200
    return {"X-Admin-Token": r.json()["token"]}


@pytest.fixture
def conversation_id(client):
    r = client.post("/api/chat/start", json={"sessionId": "session_test_1"})
    assert r.status_code == 201
    return r.json()["id"]
