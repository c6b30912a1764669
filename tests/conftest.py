"""
Pytest configuration and fixtures for Notifier tests.

Provides:
- Async test database with SQLite
- Test client for API testing
- Factory fixtures for preferences and device tokens
- A recording push gateway and a scheduler builder for cycle tests
"""

from collections.abc import AsyncGenerator
from datetime import datetime, time

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from notifier.config import Settings, get_settings
from notifier.core.database import get_db
from notifier.core.scheduler import get_notification_scheduler
from notifier.jobs.notification_cycle import NotificationScheduler
from notifier.main import app
from notifier.models import Base, DeviceToken, NotificationFrequency, NotificationPreference
from notifier.schemas.notification import PushPayload
from notifier.services.content_provider import StaticQuoteProvider
from notifier.services.dispatcher import Dispatcher
from notifier.services.push_gateway import BasePushGateway

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_QUOTES = [
    {"text": "Breathe in, breathe out.", "author": "Test Author", "category": "test"},
]


# Override settings for testing
class TestSettings(Settings):
    database_url: str = TEST_DATABASE_URL
    debug: bool = True
    scheduler_enabled: bool = False
    # Push delivery disabled in tests (uses NullPushGateway)
    fcm_project_id: str = ""
    fcm_access_token: str = ""


class RecordingGateway(BasePushGateway):
    """In-memory gateway that records sends and fails configured tokens."""

    provider_name = "recording"

    def __init__(self, failures: dict[str, Exception] | None = None, on_send=None) -> None:
        self.failures = failures or {}
        self.on_send = on_send
        self.sent: list[tuple[str, PushPayload]] = []

    async def send(self, token: str, payload: PushPayload) -> None:
        if self.on_send:
            await self.on_send(token, payload)
        if token in self.failures:
            raise self.failures[token]
        self.sent.append((token, payload))

    @property
    def sent_tokens(self) -> list[str]:
        return [token for token, _ in self.sent]


@pytest_asyncio.fixture
async def db_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine, as the scheduler uses it."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def api_scheduler(session_factory) -> NotificationScheduler:
    """Notification scheduler served to the API under test."""
    return NotificationScheduler(
        session_factory=session_factory,
        dispatcher=Dispatcher(RecordingGateway()),
        content_provider=StaticQuoteProvider(quotes=TEST_QUOTES),
        max_concurrent_users=1,
    )


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    api_scheduler: NotificationScheduler,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with database and scheduler overrides."""

    async def override_get_db():
        yield db_session

    def override_get_settings():
        return TestSettings()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = override_get_settings
    app.dependency_overrides[get_notification_scheduler] = lambda: api_scheduler

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def preference_factory(session_factory):
    """Factory for creating committed notification preferences.

    Rows are committed in their own session so scheduler sessions on the
    shared test connection can see them.
    """

    async def _create_preference(
        user_id: str,
        frequency: NotificationFrequency = NotificationFrequency.DAILY,
        enabled: bool = True,
        quiet_start: time = time(22, 0),
        quiet_end: time = time(8, 0),
        last_sent: datetime | None = None,
    ) -> NotificationPreference:
        preference = NotificationPreference(
            user_id=user_id,
            enabled=enabled,
            frequency=frequency,
            quiet_hours_start=quiet_start,
            quiet_hours_end=quiet_end,
            last_notification_sent=last_sent,
        )
        async with session_factory() as session:
            session.add(preference)
            await session.commit()
        return preference

    return _create_preference


@pytest_asyncio.fixture
async def token_factory(session_factory):
    """Factory for creating committed device tokens."""

    async def _create_token(
        user_id: str,
        token: str,
        platform: str | None = "android",
    ) -> DeviceToken:
        device_token = DeviceToken(user_id=user_id, token=token, platform=platform)
        async with session_factory() as session:
            session.add(device_token)
            await session.commit()
        return device_token

    return _create_token


# ============================================================================
# Scheduler Fixtures
# ============================================================================


@pytest.fixture
def recording_gateway():
    """Factory for RecordingGateway instances."""

    def _create(failures: dict[str, Exception] | None = None, on_send=None) -> RecordingGateway:
        return RecordingGateway(failures=failures, on_send=on_send)

    return _create


@pytest.fixture
def make_scheduler(session_factory):
    """Factory for NotificationScheduler wired to the test database.

    One user at a time: the in-memory database has a single connection.
    """

    def _make(
        gateway: BasePushGateway,
        send_timeout_seconds: float = 1.0,
        store_timeout_seconds: float = 5.0,
        prune_invalid_tokens: bool = False,
    ) -> NotificationScheduler:
        return NotificationScheduler(
            session_factory=session_factory,
            dispatcher=Dispatcher(gateway, send_timeout_seconds=send_timeout_seconds),
            content_provider=StaticQuoteProvider(quotes=TEST_QUOTES),
            store_timeout_seconds=store_timeout_seconds,
            max_concurrent_users=1,
            prune_invalid_tokens=prune_invalid_tokens,
        )

    return _make
