"""
Pytest configuration and fixtures.
Provides an in-memory database, an in-memory object store and helpers that
create users, profiles, photos and relationships directly in the store.
"""
import os
import io
import tempfile

# Settings are read at import time, so they must be in place before app modules load
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test_secret_key_for_testing_purposes_only_very_long_and_secure")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("STORAGE_PATH", tempfile.mkdtemp(prefix="photo-social-test-"))

import pytest
from datetime import datetime
from typing import AsyncGenerator, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from PIL import Image, ExifTags
from PIL.TiffImagePlugin import IFDRational

from services.db import Base
from models import notification, social  # noqa: F401  register tables
from models.user import User
from models.profile import Profile
from models.photo import Photo, Visibility
from models.social import Follow, Friendship, FriendshipStatus
from services.file_storage import ObjectStore, StorageError, StoredObject
from services.realtime import ChangeBroadcaster

# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

@pytest.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()

@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()

class InMemoryObjectStore(ObjectStore):
    """Object store double. ``fail_after`` makes the n+1-th put fail."""

    def __init__(self, fail_after: Optional[int] = None, fail_delete: bool = False):
        self.blobs: Dict[str, bytes] = {}
        self.fail_after = fail_after
        self.fail_delete = fail_delete
        self.puts = 0

    async def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        if self.fail_after is not None and self.puts >= self.fail_after:
            raise StorageError(f"Simulated failure storing {key}")
        self.puts += 1
        self.blobs[key] = data
        return StoredObject(path=key, url=f"https://cdn.test/{key}")

    async def delete(self, path: str):
        if self.fail_delete:
            raise StorageError(f"Simulated failure deleting {path}")
        self.blobs.pop(path, None)

@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()

@pytest.fixture
def broadcaster() -> ChangeBroadcaster:
    return ChangeBroadcaster(queue_size=10)

class SocialTestUtils:
    """Helpers that write rows directly and return plain ids."""

    @staticmethod
    async def create_user(db_session: AsyncSession, email: str,
                          display_name: Optional[str] = None) -> int:
        user = User(email=email, hashed_password="not-a-real-hash", is_active=True)
        db_session.add(user)
        await db_session.flush()
        user_id = user.id
        if display_name:
            db_session.add(Profile(user_id=user_id, display_name=display_name))
        await db_session.commit()
        return user_id

    @staticmethod
    async def create_photo(db_session: AsyncSession, owner_id: int, title: str = "Photo",
                           visibility: Visibility = Visibility.PUBLIC, likes: int = 0,
                           views: int = 0, created_at: Optional[datetime] = None) -> int:
        photo = Photo(
            owner_id=owner_id,
            title=title,
            image_urls=[f"https://cdn.test/photos/{owner_id}/{title}.jpg"],
            image_paths=[f"photos/{owner_id}/{title}.jpg"],
            visibility=visibility,
            likes_count=likes,
            views_count=views,
        )
        if created_at is not None:
            photo.created_at = created_at
        db_session.add(photo)
        await db_session.commit()
        # load server defaults so later lookups from the identity map need no IO
        await db_session.refresh(photo)
        return photo.id

    @staticmethod
    async def make_friends(db_session: AsyncSession, a: int, b: int):
        db_session.add(Friendship(user_id=a, friend_id=b, status=FriendshipStatus.ACCEPTED))
        db_session.add(Friendship(user_id=b, friend_id=a, status=FriendshipStatus.ACCEPTED))
        await db_session.commit()

    @staticmethod
    async def follow(db_session: AsyncSession, follower_id: int, following_id: int):
        db_session.add(Follow(follower_id=follower_id, following_id=following_id))
        await db_session.commit()

    @staticmethod
    def image_bytes(fmt: str = "PNG", size=(16, 16), color=(200, 80, 40), exif=None) -> bytes:
        buffer = io.BytesIO()
        img = Image.new("RGB", size, color)
        if exif is not None:
            img.save(buffer, format=fmt, exif=exif)
        else:
            img.save(buffer, format=fmt)
        return buffer.getvalue()

    @staticmethod
    def camera_exif(make: str = "Fujifilm", model: str = "X-T5") -> bytes:
        """EXIF block of a camera (a Fujifilm X-T5 by default) shot at f/2.8, 1/250s, ISO 400, 50mm."""
        exif = Image.Exif()
        exif[ExifTags.Base.Make] = make
        exif[ExifTags.Base.Model] = model
        exif[ExifTags.Base.FNumber] = IFDRational(28, 10)
        exif[ExifTags.Base.ExposureTime] = IFDRational(1, 250)
        exif[ExifTags.Base.ISOSpeedRatings] = 400
        exif[ExifTags.Base.FocalLength] = IFDRational(50, 1)
        return exif.tobytes()

@pytest.fixture
def utils():
    """Provide test helpers."""
    return SocialTestUtils

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that go through the HTTP app"
    )
