"""
Shared test fixtures for the Wayfarer test suite.

Async throughout (aiosqlite + AsyncSession). The clock and the email
sender are replaced by in-memory doubles so expiry and delivery can be
controlled from each test.
"""

import os
import sys
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256-signing"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["AUTH_RATE_LIMIT"] = "1000/minute"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_db, get_email_sender
from app.core.clock import get_clock
from app.core.exceptions import DeliveryFailed
from app.core.security import TokenService, pwd_context
from app.db.base import Base
from app.main import app
from app.models.tour import Review, Tour
from app.models.user import Role, User

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


# ── Doubles ─────────────────────────────────────────────────────────
class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@dataclass
class SentEmail:
    recipient: str
    subject: str
    body: str


class Outbox:
    """Captures outgoing mail.

    Set ``fail`` to simulate an SMTP outage, or ``error`` to make the sender
    blow up with an arbitrary exception.
    """

    def __init__(self) -> None:
        self.messages: list[SentEmail] = []
        self.fail = False
        self.error: Exception | None = None

    async def send(self, recipient: str, subject: str, body: str) -> None:
        if self.error is not None:
            raise self.error
        if self.fail:
            raise DeliveryFailed()
        self.messages.append(SentEmail(recipient, subject, body))


# ── Database ────────────────────────────────────────────────────────
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
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Clock / email overrides ─────────────────────────────────────────
@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


@pytest.fixture(autouse=True)
def _override_collaborators(clock: FrozenClock, outbox: Outbox):
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_email_sender] = lambda: outbox
    yield
    app.dependency_overrides.pop(get_clock, None)
    app.dependency_overrides.pop(get_email_sender, None)


@pytest.fixture
def tokens(clock: FrozenClock) -> TokenService:
    return TokenService.from_settings(clock=clock)


# ── HTTP client ─────────────────────────────────────────────────────
@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ── Data helpers ────────────────────────────────────────────────────
MakeUser = Callable[..., Awaitable[User]]


@pytest.fixture
def make_user(db_session: AsyncSession) -> MakeUser:
    async def _make(
        email: str = "user@example.com",
        password: str = "password123",
        role: Role = Role.USER,
        name: str = "Test User",
        active: bool = True,
    ) -> User:
        user = User(
            name=name,
            email=email,
            password=pwd_context.hash(password),
            role=role,
            active=active,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers(tokens: TokenService) -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {tokens.issue(user.id).token}"}

    return _headers


def tour_payload(**overrides) -> dict:
    payload = {
        "name": "The Forest Hiker",
        "duration": 5,
        "max_group_size": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "image_cover": "tour-1-cover.jpg",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_tour(db_session: AsyncSession) -> Callable[..., Awaitable[Tour]]:
    async def _make(**overrides) -> Tour:
        tour = Tour(**tour_payload(**overrides))
        db_session.add(tour)
        await db_session.commit()
        await db_session.refresh(tour)
        return tour

    return _make


@pytest.fixture
def make_review(db_session: AsyncSession) -> Callable[..., Awaitable[Review]]:
    async def _make(tour: Tour, author: User, rating: float = 4.0, text: str = "Great") -> Review:
        review = Review(review=text, rating=rating, tour_id=tour.id, user_id=author.id)
        db_session.add(review)
        await db_session.commit()
        await db_session.refresh(review)
        return review

    return _make


@pytest.fixture
def tour_data() -> Callable[..., dict]:
    return tour_payload
