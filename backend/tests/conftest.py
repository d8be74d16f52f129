"""
Pytest fixtures for test database, client, accounts and domain objects.

Every test gets a fresh in-memory SQLite database. The HTTP client and the
services under test share one AsyncSession, so objects created by fixtures
are visible to requests and vice versa.
"""

import itertools
import os
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator

# Must be set before the app (and its settings) are imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_ENABLED"] = "false"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.core.security import create_access_token, hash_password
from app.models.booking import Booking
from app.models.professional import Professional
from app.models.session import Session, SessionParticipant
from app.models.user import User
from app.services.interfaces.notifier import Notifier

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed reference time for fixtures and injected clocks
NOW = datetime.now(timezone.utc).replace(microsecond=0)


class RecordingNotifier(Notifier):
    """Keeps every notification in memory."""

    def __init__(self):
        self.sent: list[tuple[str, int, dict[str, Any]]] = []

    async def notify(self, kind: str, recipient_id: int, payload: dict[str, Any]) -> None:
        self.sent.append((kind, recipient_id, payload))

    def of_kind(self, kind: str) -> list[tuple[str, int, dict[str, Any]]]:
        return [entry for entry in self.sent if entry[0] == kind]


class FailingNotifier(RecordingNotifier):
    """Fails for the given recipients (all of them when none are given)."""

    def __init__(self, fail_for: set[int] | None = None):
        super().__init__()
        self.fail_for = fail_for

    async def notify(self, kind: str, recipient_id: int, payload: dict[str, Any]) -> None:
        if self.fail_for is None or recipient_id in self.fail_for:
            raise ConnectionError("notification channel unavailable")
        await super().notify(kind, recipient_id, payload)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests run on the test session, committing like get_db does."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    """Factory: failing_notifier({user_id, ...}) or failing_notifier() to fail everything."""
    return FailingNotifier


async def _create_user(db: AsyncSession, username: str, role: str, first_name: str, last_name: str) -> User:
    user = User(
        email=f"{username}@example.com",
        username=username,
        hashed_password=hash_password("testpassword123"),
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A client account."""
    return await _create_user(db_session, "testuser", "client", "Amina", "Benali")


@pytest_asyncio.fixture
async def other_client(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "otherclient", "client", "Youssef", "Alaoui")


@pytest_asyncio.fixture
async def pro_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "prouser", "professional", "Salma", "Idrissi")


@pytest_asyncio.fixture
async def professional(db_session: AsyncSession, pro_user: User) -> Professional:
    profile = Professional(
        user_id=pro_user.id,
        business_name="Zen Studio",
        booking_mode="manual",
        city="Rabat",
        postal_code="10000",
        country="Morocco",
    )
    db_session.add(profile)
    await db_session.commit()
    await db_session.refresh(profile)
    return profile


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "adminuser", "admin", "Admin", "User")


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return _headers(test_user)


@pytest.fixture
def other_headers(other_client: User) -> dict:
    return _headers(other_client)


@pytest.fixture
def pro_headers(pro_user: User, professional: Professional) -> dict:
    return _headers(pro_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return _headers(admin_user)


@pytest_asyncio.fixture
async def make_session(db_session: AsyncSession, professional: Professional):
    """Factory for sessions of the default professional, timed relative to NOW."""

    async def _make(
        start_time: datetime | None = None,
        duration: int = 60,
        status: str = "scheduled",
        max_participants: int = 10,
        category: str = "group",
        title: str = "Morning Yoga",
    ) -> Session:
        session = Session(
            professional_id=professional.id,
            title=title,
            description="A gentle flow for all levels",
            max_participants=max_participants,
            price=150.0,
            category=category,
            location="12 Avenue Mohammed V" if category != "online" else None,
            meeting_link="https://meet.example.com/yoga" if category == "online" else None,
            status=status,
        )
        session.schedule(start_time or NOW + timedelta(days=2), duration)
        db_session.add(session)
        await db_session.commit()
        await db_session.refresh(session)
        return session

    return _make


@pytest_asyncio.fixture
async def make_booking(db_session: AsyncSession):
    """Factory for bookings of a client on a session, with participant rows for confirmed ones."""
    numbers = itertools.count(1)

    async def _make(
        session: Session,
        client: User,
        status: str = "confirmed",
        completed_at: datetime | None = None,
    ) -> Booking:
        booking = Booking(
            booking_number=f"BK20260101{next(numbers):04d}",
            client_id=client.id,
            professional_id=session.professional_id,
            service_name=session.title,
            service_duration=session.duration,
            service_price=session.price,
            session_id=session.id,
            appointment_date=session.start_time,
            appointment_start=session.start_time.strftime("%H:%M"),
            appointment_end=session.end_time.strftime("%H:%M"),
            location_type="in_person",
            status=status,
            completed_at=completed_at,
        )
        db_session.add(booking)
        if status in ("confirmed", "in_progress", "completed"):
            db_session.add(SessionParticipant(session_id=session.id, user_id=client.id, joined_at=NOW))
        await db_session.commit()
        await db_session.refresh(booking)
        return booking

    return _make
