"""
PaintSnap Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Each test gets its own SQLite file (aiosqlite) and blob directory
       under pytest's tmp_path, so tests never share state. Firebase is
       replaced by `FakeIdentityProvider`, a token → identity table.

Fixture Hierarchy:
    settings ─┬─ database ── session ── store
              ├─ blob_store
              └─ app (create_app + lifespan) ── client / make_client
    identity_provider: FakeIdentityProvider shared by store-level and API tests
"""

import io
import os
import tempfile
from typing import Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Set BEFORE any paintsnap import: `paintsnap.main` builds a module-level app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./paintsnap_test.db"
os.environ["SESSION_SECRET"] = "test-session-secret-not-real"
os.environ["FIREBASE_PROJECT_ID"] = "paintsnap-test"
os.environ["FIREBASE_CLIENT_EMAIL"] = "tests@paintsnap-test.iam.gserviceaccount.com"
os.environ["FIREBASE_PRIVATE_KEY"] = "not-a-real-key"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="paintsnap_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from paintsnap.config import Settings  # noqa: E402
from paintsnap.database import Database  # noqa: E402
from paintsnap.exceptions import UnauthorizedError  # noqa: E402
from paintsnap.main import create_app  # noqa: E402
from paintsnap.models import Area, Photo, Project, Tag, User  # noqa: E402
from paintsnap.services.blob_store import BlobStore  # noqa: E402
from paintsnap.services.entity_store import EntityStore  # noqa: E402
from paintsnap.services.identity_provider import FederatedIdentity, IdentityProvider  # noqa: E402


class FakeIdentityProvider(IdentityProvider):
    """In-memory stand-in for Firebase: known tokens map to identities."""

    def __init__(self):
        self.tokens: Dict[str, FederatedIdentity] = {}
        self.calls = 0
        self.started = False

    def start(self) -> None:
        self.started = True

    def close(self) -> None:
        self.started = False

    def add(self, token: str, uid: str, email=None, email_verified=False, display_name=None):
        self.tokens[token] = FederatedIdentity(
            uid=uid,
            email=email,
            email_verified=email_verified,
            display_name=display_name,
            photo_url=None,
        )

    async def verify_token(self, id_token: str) -> FederatedIdentity:
        self.calls += 1
        try:
            return self.tokens[id_token]
        except KeyError:
            raise UnauthorizedError("Invalid identity token")


def png_bytes(color: str = "white", size=(8, 8)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


# ══════════════════════════════════════════════════════════════════════════
# Configuration & Persistence
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def settings_overrides():
    """Override in a test module to tweak quotas, rate limits, ..."""
    return {}


@pytest.fixture
def settings(tmp_path, settings_overrides):
    values = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'paintsnap.db'}",
        "session_secret": "test-session-secret-not-real",
        "firebase_project_id": "paintsnap-test",
        "firebase_client_email": "tests@paintsnap-test.iam.gserviceaccount.com",
        "firebase_private_key": "not-a-real-key",
        "storage_root": str(tmp_path / "storage"),
        "create_tables_on_startup": True,
        "blob_cleanup_min_wait": 0,
        "blob_cleanup_max_wait": 0,
        "log_level": "WARNING",
    }
    values.update(settings_overrides)
    return Settings(**values)


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with database.session_factory() as s:
        yield s
        await s.rollback()


@pytest.fixture
def released_blobs():
    """Keys handed to the store's post-commit release hook."""
    return []


@pytest.fixture
def store(session, released_blobs):
    return EntityStore(session, on_orphaned_blobs=released_blobs.extend)


@pytest.fixture
def blob_store(settings):
    bs = BlobStore.from_settings(settings)
    bs.start()
    return bs


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture
def sample_png():
    return png_bytes()


# ══════════════════════════════════════════════════════════════════════════
# Seed data helpers
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def alice(store):
    return await store.create(User, {"username": "alice", "email": "alice@example.com"})


@pytest_asyncio.fixture
async def bob(store):
    return await store.create(User, {"username": "bob", "email": "bob@example.com"})


@pytest_asyncio.fixture
async def home(store, alice):
    """Alice's "Home" project with a "Kitchen" area, one photo and one tag."""
    project = await store.create(Project, {"user_id": alice.id, "name": "Home"})
    area = await store.create(Area, {"user_id": alice.id, "project_id": project.id, "name": "Kitchen"})
    photo = await store.create(Photo, {
        "user_id": alice.id,
        "area_id": area.id,
        "name": "North wall",
        "filename": "wall.png",
        "storage_key": "photos/2026/01/01/wall.png",
        "content_type": "image/png",
        "size_bytes": 100,
    })
    tag = await store.create(Tag, {
        "user_id": alice.id,
        "photo_id": photo.id,
        "description": "Swiss Coffee",
        "position_x": 50,
        "position_y": 50,
    })
    return {"project": project, "area": area, "photo": photo, "tag": tag}


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def app(settings, identity_provider):
    """
    Fully wired application with its lifespan running.

    ASGITransport does not send lifespan events, so the lifespan context
    is entered here explicitly.
    """
    application = create_app(
        settings=settings,
        database=Database(settings),
        identity_provider=identity_provider,
        blob_store=BlobStore.from_settings(settings),
    )
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture
async def make_client(app):
    """Factory for independent clients (separate cookie jars) on one app."""
    clients = []

    def _make() -> AsyncClient:
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()


@pytest_asyncio.fixture
async def client(make_client):
    return make_client()


async def register(client: AsyncClient, username: str, password: str = "secret123") -> dict:
    response = await client.post("/api/auth/register", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": password,
    })
    assert response.status_code == 201, response.text
    return response.json()
