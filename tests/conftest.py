"""
Pytest configuration and shared fixtures.
"""

import pytest
import pytest_asyncio
from typing import Optional, Dict

from config import Settings
from taskboard.database.connection import Database
from taskboard.services.context import Services, RequestContext
from taskboard.services.identity import Identity, IdentityProvider
from taskboard.services.rate_limiter import MemoryCounterStore

# 2026-01-15 12:00:00 UTC
BASE_TIME_MS = 1768478400000


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, now: int = BASE_TIME_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class StaticIdentityProvider(IdentityProvider):
    """Treats the credentials as the user id for any known user."""

    def __init__(self, users=("u1", "u2")):
        self.users = set(users)

    async def resolve_identity(self, credentials: Optional[str]) -> Optional[Identity]:
        if credentials in self.users:
            return Identity(user_id=credentials)
        return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(database_url="sqlite+aiosqlite:///:memory:", redis_url="", environment="test")


@pytest_asyncio.fixture
async def db():
    """In-memory SQLite database with all tables created."""
    database = Database("sqlite+aiosqlite:///:memory:")
    assert await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def services(db, clock, test_settings):
    """Services over the in-memory database with a fixed clock."""
    return Services.create(
        db=db,
        clock=clock,
        counter_store=MemoryCounterStore(clock),
        identity=StaticIdentityProvider(),
        settings=test_settings,
    )


@pytest.fixture
def as_user(services):
    """Build a request context for the given credentials."""
    def _make(credentials: Optional[str]) -> RequestContext:
        return RequestContext(services=services, credentials=credentials)
    return _make


@pytest.fixture
def mock_database():
    """Mock database with session context manager."""
    from unittest.mock import AsyncMock, Mock

    db = Mock()
    session = AsyncMock()

    # Mock session context manager
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)

    # Mock session methods
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.get = AsyncMock()
    session.add = Mock()

    db.session = Mock(return_value=session)

    return db, session


@pytest.fixture
def sample_task_data() -> Dict:
    """Sample task fields for testing."""
    return {
        "title": "Buy milk",
        "priority": "low",
        "description": "Semi-skimmed",
    }


@pytest.fixture
def client(clock, test_settings):
    """
    TestClient over a fresh in-memory database.

    The database is opened lazily on the client's own event loop, so this
    fixture does not use ``db``.
    """
    from fastapi.testclient import TestClient
    from taskboard.main import create_app

    database = Database("sqlite+aiosqlite:///:memory:")
    app_services = Services.create(
        db=database,
        clock=clock,
        counter_store=MemoryCounterStore(clock),
        identity=StaticIdentityProvider(),
        settings=test_settings,
    )
    with TestClient(create_app(app_services)) as test_client:
        yield test_client
        test_client.portal.call(database.close)
