"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own SQLite file (aiosqlite) so concurrent sessions
contend for real database locks, the way separate request handlers do.
The app's session factory, admission config, email sender and attempt
limiter are swapped through FastAPI dependency overrides.
"""

import os

# Before any app import so get_settings() never sees a live Redis
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_STRATEGY", "none")

from dataclasses import replace
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.main import app
from app.core.config import AdmissionConfig, SignUpMode, get_admission_config
from app.core.security import create_access_token, hash_password
from app.db.base import Base
from app.db.session import get_session_factory
from app.models.invitation_code import InvitationCode
from app.models.user import User
from app.services.admission_ledger import AdmissionLedger
from app.services.interfaces.email_sender import EmailMessage, EmailSender
from app.services.interfaces.noop_limiter import NoopLimiter
from app.services.strategy_factory import get_attempt_limiter, get_email_sender

TEST_CONFIG = AdmissionConfig(
    mode=SignUpMode.OPEN,
    max_attempts=5,
    base_delay_ms=1,
    backoff_multiplier=2.0,
    attempt_timeout_seconds=10.0,
)


class RecordingEmailSender(EmailSender):
    """Keeps sent messages in memory."""

    def __init__(self):
        self.messages: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> None:
        self.messages.append(message)

    def sent_to(self, email: str) -> list[EmailMessage]:
        return [m for m in self.messages if m.to == email]

    def last_token(self, email: str) -> str:
        return self.sent_to(email)[-1].action_url.split("token=", 1)[1]


class LockedSessionFactory:
    """
    Session factory whose first `failures` sessions fail on entry with
    SQLite's lock error, then hands out real sessions.
    """

    def __init__(self, real: async_sessionmaker, failures: int):
        self.real = real
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            return _LockedSession()
        return self.real()


class _LockedSession:
    async def __aenter__(self):
        raise OperationalError("UPDATE invitation_codes", {}, Exception("database is locked"))

    async def __aexit__(self, *exc_info):
        return False


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=15000")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def admission_config() -> AdmissionConfig:
    return TEST_CONFIG


@pytest.fixture
def ledger(session_factory, admission_config) -> AdmissionLedger:
    return AdmissionLedger(session_factory, admission_config)


@pytest.fixture
def outbox() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def seed_codes(session_factory) -> Callable:
    """Provision invitation codes the way an operator would."""

    async def _seed(*codes: str) -> None:
        async with session_factory() as session:
            session.add_all([InvitationCode(code=code) for code in codes])
            await session.commit()

    return _seed


@pytest.fixture
def fetch_code(session_factory) -> Callable:
    async def _fetch(code: str):
        async with session_factory() as session:
            return await session.get(InvitationCode, code)

    return _fetch


@pytest_asyncio.fixture
async def client(session_factory, admission_config, outbox) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test database and in-memory collaborators."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_admission_config] = lambda: admission_config
    app.dependency_overrides[get_email_sender] = lambda: outbox
    app.dependency_overrides[get_attempt_limiter] = lambda: NoopLimiter()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def use_mode(admission_config) -> Callable[[SignUpMode], None]:
    """Switch the admission mode the app sees for the rest of the test."""

    def _use(mode: SignUpMode) -> None:
        config = replace(admission_config, mode=mode)
        app.dependency_overrides[get_admission_config] = lambda: config

    return _use


async def _create_user(session_factory, email: str, verified: bool) -> User:
    async with session_factory() as session:
        user = User(
            email=email,
            name="Test User",
            hashed_password=hash_password("testpassword123"),
            email_verified=verified,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest_asyncio.fixture
async def test_user(session_factory) -> User:
    """A verified user who can sign in."""
    return await _create_user(session_factory, "test@example.com", verified=True)


@pytest_asyncio.fixture
async def unverified_user(session_factory) -> User:
    return await _create_user(session_factory, "pending@example.com", verified=False)


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    token = create_access_token(data={"sub": str(test_user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def locked_sessions(session_factory) -> Callable[[int], LockedSessionFactory]:
    """Build a session factory whose first `failures` sessions hit a lock error."""

    def _build(failures: int) -> LockedSessionFactory:
        return LockedSessionFactory(session_factory, failures)

    return _build
