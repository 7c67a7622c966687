"""
Pytest configuration and fixtures
Provides an isolated SQLite database, media root, test client and common users
"""
import os
import sys
import tempfile
from datetime import datetime, timedelta
from typing import Generator

# Test environment must be in place before settings are loaded
_TEST_ROOT = tempfile.mkdtemp(prefix="thevideopool-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_ROOT, 'test.db')}"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["LOCAL_MEDIA_ROOT"] = os.path.join(_TEST_ROOT, "media")
os.environ["BULK_DOWNLOAD_DIR"] = os.path.join(_TEST_ROOT, "bulk-downloads")
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["SMTP_HOST"] = ""
os.environ["GEMINI_API_KEY"] = ""

# Add parent directory to path to import backend modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from sqlalchemy.orm import Session
from fastapi.testclient import TestClient

from main import app
from core.config import settings
from core.database import get_db, engine, SessionLocal, Base
from core.security import create_access_token, hash_password
from models.user import User, UserRole
from models.membership import Membership, BillingCycle
from models.video import Video, Category
from services.email_service import send_counter

import models  # noqa: F401  registers every table


@pytest.fixture(scope="session", autouse=True)
def test_engine():
    """
    Create all tables once for the test session
    """
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db(test_engine) -> Generator[Session, None, None]:
    """
    Database session for one test; every table is emptied afterwards
    """
    session = SessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture(scope="function")
def client(test_db: Session) -> Generator[TestClient, None, None]:
    """
    FastAPI test client bound to the test session
    """
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_send_counter():
    """Each test starts a fresh hourly email window"""
    send_counter.reset()
    yield
    send_counter.reset()


@pytest.fixture
def media_file():
    """Write a file under the local videos bucket and return its key"""
    def _write(key: str, content: bytes = b"0123456789" * 10) -> str:
        path = os.path.join(settings.LOCAL_MEDIA_ROOT, settings.MINIO_BUCKET_VIDEOS, key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
        return key

    return _write


@pytest.fixture
def test_membership(test_db: Session) -> Membership:
    membership = Membership(
        name="Pro Monthly",
        price=2999,
        billing_cycle=BillingCycle.MONTHLY,
        download_limit=5,
        features=["5 downloads per month", "HD quality"],
        is_popular=True,
    )
    test_db.add(membership)
    test_db.commit()
    test_db.refresh(membership)
    return membership


@pytest.fixture
def test_user(test_db: Session) -> User:
    """
    Create a test user without a membership
    """
    return create_test_user_in_db(test_db, "testuser", "testuser@example.com")


@pytest.fixture
def member_user(test_db: Session, test_membership: Membership) -> User:
    """
    User with an active membership and the tier's full quota
    """
    user = create_test_user_in_db(test_db, "member", "member@example.com")
    user.membership_id = test_membership.id
    user.membership_start_date = datetime.utcnow() - timedelta(days=1)
    user.membership_end_date = datetime.utcnow() + timedelta(days=29)
    user.downloads_remaining = test_membership.download_limit
    user.downloads_used = 0
    test_db.commit()
    test_db.refresh(user)
    return user


@pytest.fixture
def test_admin(test_db: Session) -> User:
    """
    Create a test admin user
    """
    return create_test_user_in_db(test_db, "admin", "admin@example.com", role=UserRole.ADMIN)


@pytest.fixture
def user_token(test_user: User) -> str:
    return create_access_token(data={"sub": test_user.id})


@pytest.fixture
def admin_token(test_admin: User) -> str:
    return create_access_token(data={"sub": test_admin.id})


@pytest.fixture
def auth_headers(user_token: str) -> dict:
    """
    Authorization headers for the regular user
    """
    return get_auth_header(user_token)


@pytest.fixture
def member_headers(member_user: User) -> dict:
    return get_auth_header(create_access_token(data={"sub": member_user.id}))


@pytest.fixture
def admin_headers(admin_token: str) -> dict:
    """
    Authorization headers for the admin user
    """
    return get_auth_header(admin_token)


@pytest.fixture
def staff_headers(test_db: Session):
    """Factory: create a user with the given role and return its auth headers"""
    def _make(role: UserRole) -> dict:
        user = create_test_user_in_db(test_db, role.value, f"{role.value}@example.com", role=role)
        return get_auth_header(create_access_token(data={"sub": user.id}))

    return _make


@pytest.fixture
def test_category(test_db: Session) -> Category:
    """
    Create a test category
    """
    category = Category(name="EDM", slug="edm", icon_name="music", item_count=0)
    test_db.add(category)
    test_db.commit()
    test_db.refresh(category)
    return category


@pytest.fixture
def test_video(test_db: Session, test_category: Category, media_file) -> Video:
    """
    Premium video whose file exists in the local media root
    """
    video = Video(
        title="Neon Tunnel",
        description="Looping neon tunnel for club sets",
        video_key=media_file("neon-tunnel.mp4"),
        video_url="/media/videos/neon-tunnel.mp4",
        duration=30,
        resolution="1080p",
        category_id=test_category.id,
        is_premium=True,
        is_loop=True,
    )
    test_db.add(video)
    test_category.item_count = 1
    test_db.commit()
    test_db.refresh(video)
    return video


@pytest.fixture
def make_video(test_db: Session, media_file):
    """Factory for extra videos with a stored file"""
    def _make(title: str, category: Category, **fields) -> Video:
        key = media_file(f"{title.lower().replace(' ', '-')}.mp4")
        video = Video(title=title, video_key=key, category_id=category.id, **fields)
        test_db.add(video)
        test_db.commit()
        test_db.refresh(video)
        return video

    return _make


@pytest.fixture
def sample_videos(test_db: Session, test_category: Category, media_file) -> list[Video]:
    """
    Several videos with different flags and download counts
    """
    specs = [
        ("Laser Countdown", "Countdown intro with lasers", "4k", False, False, 40),
        ("Retro Grid Loop", "Synthwave grid loop", "1080p", True, True, 25),
        ("Wedding Hearts", "Soft hearts for the first dance", "1080p", True, False, 10),
        ("Abstract Smoke", "Slow smoke visuals", "720p", True, True, 5),
    ]
    videos = []

    for i, (title, description, resolution, premium, loop, downloads) in enumerate(specs, 1):
        video = Video(
            title=title,
            description=description,
            video_key=media_file(f"sample-{i}.mp4"),
            resolution=resolution,
            category_id=test_category.id,
            is_premium=premium,
            is_loop=loop,
            download_count=downloads,
        )
        test_db.add(video)
        videos.append(video)

    test_category.item_count = len(specs)
    test_db.commit()

    for video in videos:
        test_db.refresh(video)

    return videos


# Helper functions for tests
def get_auth_header(token: str) -> dict:
    """Helper to create authorization header"""
    return {"Authorization": f"Bearer {token}"}


def create_test_user_in_db(
    db: Session,
    username: str,
    email: str,
    role: UserRole = UserRole.USER,
    password: str = "secret123"
) -> User:
    """Helper to create a user in the database"""
    user = User(
        username=username,
        email=email,
        password=hash_password(password),
        role=role,
        downloads_used=0,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
