"""
Pytest configuration and fixtures for testing.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("EMAIL_SEND_DELAY_SECONDS", "0")

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from datetime import datetime, timedelta
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from pickleball_crew.main import app
from pickleball_crew.db.session import Base, get_session
from pickleball_crew.core.security import hash_password, create_access_token
from pickleball_crew.db.models import Profile, RoleEnum, PlaySession, RSVP, RSVPStatusEnum


# Postgres can be used instead with TEST_DATABASE_URL
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///./test_pickleball.db"
)

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    poolclass=NullPool,
    echo=False,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

SATURDAY_MORNING = datetime(2030, 1, 5, 8, 0)
SATURDAY_EVENING = datetime(2030, 1, 5, 19, 0)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Fresh schema and session for each test.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client bound to the app, sharing the test database session.
    """
    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_profile(
    db_session: AsyncSession,
    email: str,
    name: str,
    role: RoleEnum = RoleEnum.member,
    wants_notifications: bool = True,
    wants_rsvp_updates: bool = True,
) -> Profile:
    profile = Profile(
        email=email,
        hashed_password=hash_password("Test123!@#"),
        name=name,
        role=role,
        wants_notifications=wants_notifications,
        wants_rsvp_updates=wants_rsvp_updates,
    )
    db_session.add(profile)
    await db_session.commit()
    await db_session.refresh(profile)
    return profile


def token_for(profile: Profile) -> str:
    return create_access_token({"sub": str(profile.id), "role": profile.role.value})


def auth_header(profile: Profile) -> dict:
    return {"Authorization": f"Bearer {token_for(profile)}"}


@pytest_asyncio.fixture
async def test_member(db_session: AsyncSession) -> Profile:
    return await make_profile(db_session, "member@example.com", "Mia Member")


@pytest_asyncio.fixture
async def other_member(db_session: AsyncSession) -> Profile:
    return await make_profile(db_session, "other@example.com", "Omar Other")


@pytest_asyncio.fixture
async def test_admin(db_session: AsyncSession) -> Profile:
    return await make_profile(db_session, "admin@example.com", "Ada Admin", role=RoleEnum.admin)


@pytest.fixture
def member_token(test_member: Profile) -> str:
    return token_for(test_member)


@pytest_asyncio.fixture
async def test_session(db_session: AsyncSession, test_member: Profile) -> PlaySession:
    """A public Megabox session owned by test_member, peak rate."""
    play_session = PlaySession(
        title="Saturday Smash",
        date_time=SATURDAY_EVENING,
        location="Pick & Match Megabox",
        max_players=4,
        duration_hours=2.0,
        total_cost=780.0,
        is_peak_time=True,
        is_private=False,
        invited_users=[],
        created_by=test_member.id,
    )
    db_session.add(play_session)
    await db_session.commit()
    await db_session.refresh(play_session)
    return play_session


@pytest_asyncio.fixture
async def test_rsvp(db_session: AsyncSession, other_member: Profile, test_session: PlaySession) -> RSVP:
    rsvp = RSVP(
        user_id=other_member.id,
        session_id=test_session.id,
        status=RSVPStatusEnum.maybe,
    )
    db_session.add(rsvp)
    await db_session.commit()
    await db_session.refresh(rsvp)
    return rsvp


@pytest.fixture(autouse=True)
def mock_password_hashing(monkeypatch):
    """
    Replace bcrypt hashing with a cheap deterministic stand-in for tests.
    """
    class MockPasswordContext:
        def hash(self, password: str) -> str:
            return f"$2b$12$mockedhash{password}"

        def verify(self, plain: str, hashed: str) -> bool:
            return hashed == f"$2b$12$mockedhash{plain}"

    from pickleball_crew.core import security
    monkeypatch.setattr(security, "pwd_context", MockPasswordContext())


@pytest.fixture(autouse=True)
def published_events(monkeypatch) -> list:
    """Capture notification events instead of publishing them to RabbitMQ."""
    events = []

    async def mock_publish(routing_key: str, payload: dict):
        events.append((routing_key, payload))

    from pickleball_crew.events import publisher
    monkeypatch.setattr(publisher, "publish_event", mock_publish)
    return events


class RecordingSender:
    """Stands in for the Resend client; fails for addresses in ``failing``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent = []

    def __call__(self, to_email: str, subject: str, html: str) -> dict:
        self.sent.append((to_email, subject))
        if to_email in self.failing:
            return {"success": False, "error": "rejected"}
        return {"success": True, "id": f"email-{len(self.sent)}"}


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def future_time() -> datetime:
    return datetime.now().replace(microsecond=0) + timedelta(days=7)
