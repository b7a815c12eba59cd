import os
import tempfile
from collections.abc import AsyncGenerator, Callable
from datetime import date, timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

# The test database is a throwaway SQLite file; these must be set before the
# application settings are first loaded.
_TEST_DIR = tempfile.mkdtemp(prefix="medislot-tests-")
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'medislot_test.db')}"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("CLINIC_TIMEZONE", "UTC")

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load remaining environment variables from .env file
load_dotenv()

from medislot.core.authorization import Actor, Role
from medislot.core.redis_client import CacheManager
from medislot.core.security import create_access_token
from medislot.database import get_db
from medislot.dependencies import get_cache_manager
from medislot.main import app
from medislot.models import doctors, metadata, users

# Use NullPool so every session opens its own SQLite connection
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

MONDAY_AVAILABILITY = [
    {"day_of_week": "monday", "start_time": "09:00", "end_time": "17:00", "is_available": True},
]


def next_weekday(weekday: int, min_days_ahead: int = 7) -> date:
    """First date on ``weekday`` (0 = Monday) at least ``min_days_ahead`` days out."""
    candidate = date.today() + timedelta(days=min_days_ahead)
    return candidate + timedelta(days=(weekday - candidate.weekday()) % 7)


def make_auth_headers(user: dict) -> dict:
    """Bearer headers for a stored user."""
    token = create_access_token(
        data={"sub": str(user["id"]), "email": user["email"]},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a fresh schema."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def session_factory(db_session: AsyncSession) -> async_sessionmaker[AsyncSession]:
    """Factory for extra sessions on the same schema (concurrency tests)."""
    return TestSessionLocal


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis stand-in that always misses."""
    redis_mock = MagicMock()
    redis_mock.get.return_value = None
    redis_mock.keys.return_value = []
    return redis_mock


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    mock_redis: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: CacheManager(mock_redis)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _create_user(session: AsyncSession, role: str, full_name: str) -> dict:
    user = {
        "id": uuid4(),
        "email": f"{role}-{uuid4().hex[:8]}@example.com",
        "full_name": full_name,
        "phone": "+1234567890",
        "role": role,
        "is_active": True,
    }
    await session.execute(insert(users).values(**user))
    await session.commit()
    return user


@pytest_asyncio.fixture
async def patient_user(db_session: AsyncSession) -> dict:
    return await _create_user(db_session, "patient", "Pat Patient")


@pytest_asyncio.fixture
async def other_patient_user(db_session: AsyncSession) -> dict:
    return await _create_user(db_session, "patient", "Olive Other")


@pytest_asyncio.fixture
async def doctor_user(db_session: AsyncSession) -> dict:
    return await _create_user(db_session, "doctor", "Dr. Dana Doctor")


@pytest_asyncio.fixture
async def new_doctor_user(db_session: AsyncSession) -> dict:
    """Doctor account that has not created a profile yet."""
    return await _create_user(db_session, "doctor", "Dr. Newt New")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> dict:
    return await _create_user(db_session, "admin", "Ada Admin")


@pytest_asyncio.fixture
async def doctor(db_session: AsyncSession, doctor_user: dict) -> dict:
    """Verified, active doctor working Mondays 09:00-17:00."""
    profile = {
        "id": uuid4(),
        "user_id": doctor_user["id"],
        "license_number": f"LIC-{uuid4().hex[:8]}",
        "specialization": "Cardiology",
        "qualification": "MD",
        "experience_years": 12,
        "consultation_fee": Decimal("500.00"),
        "clinic_name": "Heart Care Clinic",
        "clinic_city": "Pune",
        "clinic_phone": "9876543210",
        "availability": MONDAY_AVAILABILITY,
        "is_verified": True,
        "is_active": True,
    }
    await db_session.execute(insert(doctors).values(**profile))
    await db_session.commit()
    return profile


@pytest.fixture
def patient_actor(patient_user: dict) -> Actor:
    return Actor(user_id=patient_user["id"], role=Role.PATIENT)


@pytest.fixture
def doctor_actor(doctor_user: dict, doctor: dict) -> Actor:
    return Actor(user_id=doctor_user["id"], role=Role.DOCTOR, doctor_id=doctor["id"])


@pytest.fixture
def patient_headers(patient_user: dict) -> dict:
    return make_auth_headers(patient_user)


@pytest.fixture
def other_patient_headers(other_patient_user: dict) -> dict:
    return make_auth_headers(other_patient_user)


@pytest.fixture
def doctor_headers(doctor_user: dict, doctor: dict) -> dict:
    return make_auth_headers(doctor_user)


@pytest.fixture
def admin_headers(admin_user: dict) -> dict:
    return make_auth_headers(admin_user)


@pytest.fixture
def booking_payload(doctor: dict) -> Callable[..., dict]:
    """Build an appointment booking body for the fixture doctor."""

    def _payload(appointment_time: str = "10:00", appointment_date: date | None = None) -> dict:
        return {
            "doctor_id": str(doctor["id"]),
            "appointment_date": (appointment_date or next_weekday(0)).isoformat(),
            "appointment_time": appointment_time,
            "reason": "Recurring chest pain after exercise",
            "symptoms": "Shortness of breath",
        }

    return _payload


@pytest.fixture
def new_doctor_headers(new_doctor_user: dict) -> dict:
    return make_auth_headers(new_doctor_user)
