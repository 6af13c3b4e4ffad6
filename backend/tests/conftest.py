"""Pytest configuration and shared fixtures: in-memory document store, engines, API client."""

import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test config before app imports so settings/engine use it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from fitledger.api.deps import get_document_store
from fitledger.core.auth import create_access_token
from fitledger.core.session import SessionContext
from fitledger.main import app
from fitledger.schemas.profile import Gender, Goal, UserProfile
from fitledger.services.document_store import InMemoryDocumentStore
from fitledger.services.history import HistoryScanner
from fitledger.services.ledger_store import DailyLedgerStore
from fitledger.services.profile_store import ProfileStore
from fitledger.services.workout_sync import WorkoutSyncEngine

pytest_plugins = ["pytest_asyncio"]

USER_ID = "user-1"


@pytest.fixture
def memory_store():
    return InMemoryDocumentStore()


@pytest.fixture
def ctx():
    return SessionContext(user_id=USER_ID, is_premium=True)


@pytest.fixture
def ledger(memory_store, ctx):
    return DailyLedgerStore(memory_store, ctx)


@pytest.fixture
def engine(ledger):
    return WorkoutSyncEngine(ledger)


@pytest.fixture
def scanner(ledger):
    return HistoryScanner(ledger)


@pytest.fixture
def profiles(memory_store, ctx):
    return ProfileStore(memory_store, ctx)


@pytest.fixture
def make_profile():
    def _make(**overrides) -> UserProfile:
        fields = {
            "id": USER_ID,
            "name": "Test",
            "gender": Gender.male,
            "age": 30,
            "height_cm": 175,
            "weight_kg": 70,
            "target_weight_kg": 65,
            "goal": Goal.lose,
        }
        fields.update(overrides)
        return UserProfile(**fields)

    return _make


@pytest_asyncio.fixture
async def client(memory_store):
    """AsyncClient against the app with the document store swapped for memory_store."""
    app.dependency_overrides[get_document_store] = lambda: memory_store
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.pop(get_document_store, None)


@pytest.fixture
def auth_headers():
    """Authorization header for a premium user (auto-mirroring on)."""
    token = create_access_token(USER_ID, premium=True)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def free_headers():
    token = create_access_token(USER_ID, premium=False)
    return {"Authorization": f"Bearer {token}"}
