"""
Shared test fixtures for the LeafTrack test suite.

Async throughout (aiosqlite + AsyncSession); requests go through
httpx.AsyncClient over ASGITransport with real JWTs for seeded users.
"""

import os
import sys
from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-with-plenty-of-entropy-0123456789abcdef"
os.environ["LOCATION_SWEEP_ENABLED"] = "false"
os.environ["REDIS_URL"] = "redis://127.0.0.1:1/0"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from leaftrack.api.deps import get_db
from leaftrack.core.rate_limit import limiter
from leaftrack.core.security import create_access_token, get_password_hash
from leaftrack.db.base import Base
from leaftrack.main import app
from leaftrack.models.location import Location
from leaftrack.models.user import Role, User

# Create a test engine for the entire session
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

PASSWORD = "secret123"
_PASSWORD_HASH = get_password_hash(PASSWORD)

limiter.enabled = False


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Users & tokens ──────────────────────────────────────────────────
async def make_user(session: AsyncSession, name: str, email: str, role: Role) -> User:
    user = User(name=name, email=email, hashed_password=_PASSWORD_HASH, role=role)
    session.add(user)
    await session.commit()
    return user


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.role.value)
    return {"Authorization": f"Bearer {token}"}


async def add_location(
    session: AsyncSession,
    salesman: User,
    timestamp: datetime,
    latitude: float = 22.5726,
    longitude: float = 88.3639,
) -> Location:
    """Insert a fix directly, bypassing the API, at an arbitrary time."""
    location = Location(
        salesman_id=salesman.id,
        latitude=latitude,
        longitude=longitude,
        accuracy=10.0,
        timestamp=timestamp.astimezone(timezone.utc),
    )
    session.add(location)
    await session.commit()
    return location


@pytest.fixture
async def admin(db_session: AsyncSession) -> User:
    return await make_user(db_session, "Asha Admin", "admin@leaftrack.test", Role.ADMIN)


@pytest.fixture
async def salesman(db_session: AsyncSession) -> User:
    return await make_user(db_session, "Ravi Kumar", "ravi@leaftrack.test", Role.SALESMAN)


@pytest.fixture
async def other_salesman(db_session: AsyncSession) -> User:
    return await make_user(db_session, "Meera Das", "meera@leaftrack.test", Role.SALESMAN)


@pytest.fixture
def admin_headers(admin: User) -> dict[str, str]:
    return auth_headers(admin)


@pytest.fixture
def salesman_headers(salesman: User) -> dict[str, str]:
    return auth_headers(salesman)


@pytest.fixture
def other_salesman_headers(other_salesman: User) -> dict[str, str]:
    return auth_headers(other_salesman)
