"""
TourDesk Backend: Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (mocked DB, real in-memory DB,
       temporary image directory, generated images, API client).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session: Mock database session (no real DB needed)
    ├── image_dir / image_store: Temporary image directory
    ├── png_bytes / jpeg_bytes: Real images generated with Pillow
    ├── small_policy / transcoder: Tiny output resolution so tests stay fast
    ├── db_session_factory: In-memory SQLite (aiosqlite) with one seeded tour
    └── test_client: HTTPX AsyncClient wired to the temporary DB and directory
"""

import os
import tempfile

# Override settings for testing BEFORE any app imports
# Settings and the module-level singletons read these at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["IMAGE_DIR"] = tempfile.mkdtemp(prefix="tourdesk_test_")
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

from io import BytesIO
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db_session
from app.models.tour import Tour
from app.services.image_store import ImageStore
from app.services.image_transcoder import ImagePolicy, ImageTranscoder
from app.services.tour_image_service import TourImageService, get_tour_image_service
from app.services.tour_store import TourStore

SEEDED_COVER = "tour-1-100-cover.jpeg"
SEEDED_GALLERY = ["tour-1-100-1.jpeg", "tour-1-100-2.jpeg", "tour-1-100-3.jpeg"]


def make_image_bytes(fmt: str = "PNG", size=(64, 48), color=(200, 30, 30)) -> bytes:
    """Encode a solid-color image in memory."""
    mode = "RGBA" if fmt == "PNG" else "RGB"
    fill = color + (255,) if mode == "RGBA" else color
    buffer = BytesIO()
    Image.new(mode, size, fill).save(buffer, format=fmt)
    return buffer.getvalue()


def tour_fields(**overrides):
    """Column values of a valid tour; the seeded record and model tests share them."""
    values = {
        "name": "The Forest Hiker",
        "duration": 5,
        "max_group_size": 25,
        "difficulty": "easy",
        "ratings_average": 4.7,
        "ratings_quantity": 37,
        "price": 397.0,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "description": "Lorem ipsum dolor sit amet.",
        "cover_image": SEEDED_COVER,
        "gallery_images": list(SEEDED_GALLERY),
    }
    values.update(overrides)
    return values


# ══════════════════════════════════════════════════════════════════════════
# Mocks
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_exists(mock_db_session):
            mock_db_session.execute.return_value.scalar_one_or_none.return_value = 1
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Image Directory & Images
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def image_dir(tmp_path):
    """A fresh image directory per test (pytest cleans up tmp_path)."""
    directory = tmp_path / "img" / "tours"
    directory.mkdir(parents=True)
    return directory


@pytest.fixture
def image_store(image_dir):
    return ImageStore(image_dir=str(image_dir))


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes("JPEG", size=(80, 60), color=(20, 120, 220))


@pytest.fixture
def make_image():
    """Factory fixture: make_image("JPEG", size=(40, 120)) → encoded bytes."""
    return make_image_bytes


@pytest.fixture
def small_policy():
    """Same 3:2 shape as the production policy, small enough to encode instantly."""
    return ImagePolicy(width=30, height=20, format="jpeg", quality=90)


@pytest.fixture
def transcoder(small_policy):
    return ImageTranscoder(policy=small_policy)


# ══════════════════════════════════════════════════════════════════════════
# Database (in-memory SQLite)
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_session_factory():
    """
    In-memory SQLite with the schema created and one tour (id=1) seeded.

    StaticPool keeps a single connection, so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        session.add(Tour(id=1, **tour_fields()))
        await session.commit()

    yield factory

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_session_factory):
    async with db_session_factory() as session:
        yield session


@pytest.fixture
def seeded_images(image_dir):
    """Put the seeded tour's files on disk so cleanup has something to delete."""
    for name in [SEEDED_COVER, *SEEDED_GALLERY]:
        (image_dir / name).write_bytes(b"old image")
    return image_dir


# ══════════════════════════════════════════════════════════════════════════
# API Client
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def tour_image_service(image_store, transcoder):
    return TourImageService(store=image_store, transcoder=transcoder, tours=TourStore())


@pytest_asyncio.fixture
async def test_client(db_session_factory, tour_image_service):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport.

    The DB session and the image service are overridden so requests hit the
    in-memory database and the per-test image directory.

    Usage:
        async def test_patch(test_client):
            response = await test_client.patch("/api/v1/tours/1", json={"price": 10})
    """
    from app.main import app

    async def override_db_session():
        async with db_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_tour_image_service] = lambda: tour_image_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
