import os
from collections.abc import AsyncGenerator
from datetime import time, timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

from app.config import settings
from app.core.redis_client import get_redis_client
from app.core.security import create_access_token, get_password_hash
from app.database import async_database_url, get_db
from app.main import app
from app.models import metadata
from app.models.clinics import availability, clinics
from app.models.users import users

# Test database URL - MUST be different from production
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

if not TEST_DATABASE_URL:
    # Fall back to the configured database with a _test suffix
    base_url, _, params = settings.database_url.partition("?")
    TEST_DATABASE_URL = f"{base_url}_test" + (f"?{params}" if params else "")

if settings.database_url == TEST_DATABASE_URL:
    pytest.exit("TEST_DATABASE_URL points at the application database; refusing to drop it")

TEST_DATABASE_URL = async_database_url(TEST_DATABASE_URL)

# NullPool avoids sharing connections across event loops
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

STAFF_PASSWORD = "correct-horse-battery"


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis stand-in: every counter is on its first hit and every cache read misses."""
    redis_client = MagicMock()
    redis_client.incr.return_value = 1
    redis_client.get.return_value = None
    return redis_client


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on freshly created tables."""
    try:
        async with test_engine.begin() as conn:
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
            await conn.run_sync(metadata.drop_all)
            await conn.run_sync(metadata.create_all)
    except (OSError, OperationalError, DBAPIError) as e:
        pytest.skip(f"test database unavailable: {e}")

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, mock_redis: MagicMock
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: mock_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_clinic(db_session: AsyncSession) -> dict:
    """A clinic open 08:00-17:00 every day with 30 minute slots."""
    clinic_id = uuid4()
    await db_session.execute(
        insert(clinics).values(
            id=clinic_id,
            name="Sunrise Dental",
            slug="sunrise-dental",
            timezone="Africa/Johannesburg",
            slot_minutes=30,
            address="12 Long Street, Cape Town",
        )
    )
    await db_session.execute(
        insert(availability),
        [
            {
                "clinic_id": clinic_id,
                "weekday": weekday,
                "start_time": time(8, 0),
                "end_time": time(17, 0),
            }
            for weekday in range(7)
        ],
    )
    await db_session.commit()
    return {"id": clinic_id, "slug": "sunrise-dental", "timezone": "Africa/Johannesburg"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession, test_clinic: dict) -> dict:
    """An admin staff member of the test clinic."""
    user_id = uuid4()
    user_data = {
        "id": user_id,
        "clinic_id": test_clinic["id"],
        "email": "admin@sunrise.example.com",
        "password_hash": get_password_hash(STAFF_PASSWORD),
        "full_name": "Ada Admin",
        "role": "admin",
        "is_active": True,
    }
    await db_session.execute(insert(users).values(**user_data))
    await db_session.commit()
    user = {key: value for key, value in user_data.items() if key != "password_hash"}
    user["password"] = STAFF_PASSWORD
    return user


@pytest.fixture
def auth_headers(test_user: dict) -> dict:
    """Create authentication headers for testing protected endpoints."""
    token_data = {
        "sub": str(test_user["id"]),
        "clinic_id": str(test_user["clinic_id"]),
        "role": test_user["role"],
    }
    token = create_access_token(data=token_data, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def cron_headers() -> dict:
    """Headers carrying the scheduled-job secret."""
    return {"X-Cron-Secret": settings.cron_secret}
