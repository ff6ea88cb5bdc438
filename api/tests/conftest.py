"""Pytest configuration and shared fixtures.

This module provides:
- A throwaway SQLite database per test (aiosqlite, file in tmp_path)
- Async session fixtures for repository/service tests
- In-memory fakes for the badge store and notifier
- FastAPI test client for route tests, authenticated via X-User-Id
"""

# Set environment variables BEFORE any imports that trigger Settings validation
import os

os.environ["RATELIMIT_ENABLED"] = "false"
os.environ["TIMEZONE"] = "UTC"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator, Generator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from core.config import Settings, clear_settings_cache
from core.database import create_all_tables, create_engine, create_session_maker
from core.wide_event import init_wide_event
from services.achievement_store import LocalAchievementStore, MemoryLocalCache
from services.notifications_service import Notification

# =============================================================================
# Test Settings
# =============================================================================


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings with no settle delay and no notification grace period."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        timezone="UTC",
        default_goal=50,
        evaluation_settle_ms=0,
        notification_grace_seconds=0.0,
        notification_cooldown_seconds=10.0,
        remote_retry_attempts=1,
        local_cache_dir=str(tmp_path / "cache"),
    )


@pytest.fixture(autouse=True)
def setup_wide_event():
    """Initialize wide_event context for all tests.

    Services use set_wide_event_fields() which requires context initialization.
    In production this is done by middleware; in tests we do it here.
    """
    init_wide_event()
    yield


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None]:
    """Reset settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Fresh SQLite database file with all tables created.

    A file (not :memory:) so the pipeline's own sessions see the same data.
    """
    engine = create_engine(test_settings.database_url)
    await create_all_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_maker(test_engine)


@pytest_asyncio.fixture
async def db_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_maker() as session:
        yield session


# =============================================================================
# Fakes
# =============================================================================


class RecordingNotifier:
    """Notifier fake that keeps every notification and celebration."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []
        self.celebrations: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def celebrate(self, notification: Notification) -> None:
        self.celebrations.append(notification)

    def kinds_for(self, badge_id: str) -> list[str]:
        return [n.kind.value for n in self.notifications if n.badge_id == badge_id]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def memory_store() -> LocalAchievementStore:
    """In-memory stand-in for the remote badge/prestige store."""
    return LocalAchievementStore(MemoryLocalCache())


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================

TEST_USER_ID = "user_test_123456789"


@pytest.fixture
def test_user_id() -> str:
    return TEST_USER_ID


@pytest_asyncio.fixture
async def app(
    test_engine: AsyncEngine,
    session_maker: async_sessionmaker[AsyncSession],
    test_settings: Settings,
) -> AsyncGenerator[FastAPI]:
    """FastAPI app wired to the test database without running the lifespan."""
    from main import app as fastapi_app
    from main import build_achievement_services

    fastapi_app.state.engine = test_engine
    fastapi_app.state.session_maker = session_maker
    fastapi_app.state.init_done = True
    fastapi_app.state.init_error = None
    registry = build_achievement_services(
        fastapi_app, session_maker, test_settings, local_cache=MemoryLocalCache()
    )

    yield fastapi_app

    await registry.close()


@pytest_asyncio.fixture
async def client(app: FastAPI, test_user_id: str) -> AsyncGenerator[AsyncClient]:
    """Authenticated async HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-User-Id": test_user_id},
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def unauthenticated_client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
