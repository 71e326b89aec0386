"""
Root test configuration and fixtures.

Sets up environment variables BEFORE any comicshelf module is imported:
config is read once at import time, so the database file, upload dir and
secrets must point at temp locations first.
"""
import os
import sys
import tempfile

# ---------------------------------------------------------------------------
# Environment setup (runs at import time, before any test module loads)
# ---------------------------------------------------------------------------
_TEST_DIR = tempfile.mkdtemp(prefix="comicshelf_test_")
_TEST_UPLOAD_DIR = os.path.join(_TEST_DIR, "uploads")

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(_TEST_DIR, "test.db")
os.environ["UPLOAD_DIR"] = _TEST_UPLOAD_DIR
os.environ["JWT_SECRET"] = "test-user-secret-0123456789abcdef0123456789"
os.environ["ADMIN_JWT_SECRET"] = "test-admin-secret-0123456789abcdef012345678"
os.environ["ADMIN_USERNAME"] = "boss"
os.environ["ADMIN_PASSWORD"] = "s3cret-pass"
os.environ["IMAGE_SERVER_URL"] = "http://images.test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BLOCK_BOTS"] = "true"
os.environ["CONVERT_TO_WEBP"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

# Ensure the project root is on sys.path so imports work
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

# ---------------------------------------------------------------------------
# Now we can safely import pytest and the app modules
# ---------------------------------------------------------------------------
import asyncio
import io
import shutil

import pytest


def run(coro):
    """Drive one catalog coroutine to completion."""
    return asyncio.run(coro)


class RecordingCleanup:
    """Stands in for AssetCleanup on app.state; remembers what it was asked to delete."""

    def __init__(self):
        self.calls = []

    async def delete_paths(self, paths, token):
        self.calls.append((list(paths), token))

    @property
    def paths(self):
        return [p for paths, _token in self.calls for p in paths]


# ---------------------------------------------------------------------------
# Fixture: Images
# ---------------------------------------------------------------------------
@pytest.fixture
def make_image():
    """
    Factory fixture for in-memory images.

    Usage:
        data = make_image("PNG", size=(1600, 800))
    """
    def _make_image(fmt="PNG", size=(100, 150), color=(200, 50, 50), frames=1):
        from PIL import Image

        buf = io.BytesIO()
        if fmt == "GIF" and frames > 1:
            images = [Image.new("RGB", size, (i * 60 % 256, 80, 160)) for i in range(frames)]
            images[0].save(buf, format="GIF", save_all=True, append_images=images[1:], duration=100, loop=0)
        else:
            img = Image.new("RGB", size, color)
            img.save(buf, format=fmt)
        return buf.getvalue()

    return _make_image


# ---------------------------------------------------------------------------
# Fixture: Database
# ---------------------------------------------------------------------------
@pytest.fixture
def db():
    """Fresh schema for each test."""
    from comicshelf.database import drop_db, init_db

    run(drop_db())
    run(init_db())
    yield


@pytest.fixture
def session_run(db):
    """
    Run ``fn(session)`` inside its own AsyncSession.

    Usage:
        comic = session_run(lambda s: catalog.create_comic(s, {"title": "X"}))
    """
    from comicshelf.database import AsyncSessionLocal

    def _run(fn):
        async def _inner():
            async with AsyncSessionLocal() as session:
                return await fn(session)

        return run(_inner())

    return _run


# ---------------------------------------------------------------------------
# Fixture: Catalog API
# ---------------------------------------------------------------------------
@pytest.fixture
def catalog_app(db):
    from comicshelf import config
    from comicshelf.cache import QueryCache, ViewTracker
    from comicshelf.main import app

    app.state.query_cache = QueryCache(ttl=config.CACHE_TTL_SECONDS)
    app.state.view_tracker = ViewTracker(cooldown=config.VIEW_COOLDOWN_SECONDS)
    app.state.asset_cleanup = RecordingCleanup()
    return app


@pytest.fixture
def client(catalog_app):
    from fastapi.testclient import TestClient

    with TestClient(catalog_app) as c:
        yield c


@pytest.fixture
def admin_headers():
    from comicshelf import config
    from comicshelf.utils.token_utils import create_admin_token

    return {"Authorization": f"Bearer {create_admin_token(config.ADMIN_USERNAME)}"}


@pytest.fixture
def user_headers(client):
    """Registers a reader and returns their bearer header."""
    resp = client.post(
        "/api/auth/register",
        json={"username": "reader", "email": "reader@example.com", "password": "hunter22"},
    )
    assert resp.status_code == 201
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def create_comic(client, admin_headers):
    def _create(title="Test Comic", **fields):
        resp = client.post("/api/admin/comics", json={"title": title, **fields}, headers=admin_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def create_chapter(client, admin_headers):
    def _create(comic_id, chapter_number, **fields):
        resp = client.post(
            "/api/admin/chapters",
            json={"comic_id": comic_id, "chapter_number": chapter_number, **fields},
            headers=admin_headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


# ---------------------------------------------------------------------------
# Fixture: Image service
# ---------------------------------------------------------------------------
@pytest.fixture
def store(tmp_path):
    from comicshelf.imageserver.storage import AssetStore

    s = AssetStore(str(tmp_path / "uploads"))
    s.ensure_layout()
    return s


@pytest.fixture
def image_client():
    """Image service bound to the session upload dir, emptied before each test."""
    from fastapi.testclient import TestClient
    from comicshelf.imageserver.main import app

    shutil.rmtree(_TEST_UPLOAD_DIR, ignore_errors=True)
    with TestClient(app) as c:
        yield c
