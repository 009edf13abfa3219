"""
Shared fixtures: a temporary SQLite database per test, seeded users,
and an httpx client bound to the FastAPI app.
"""

import os
import tempfile

# Configure the app before anything imports settings
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{tempfile.gettempdir()}/suspended-members-test.db"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-at-least-32-characters"
os.environ["LOG_LEVEL"] = "WARNING"

import httpx
import pytest
import pytest_asyncio

from database import build_engine, build_session_factory, create_tables, get_db
from services import member_store
from services.auth import create_access_token, seed_default_users

TEST_PASSWORD = "test-password"


@pytest.fixture(autouse=True)
def reset_location_locks():
    """Locks bind to the event loop that first waits on them."""
    member_store._location_locks.clear()
    yield
    member_store._location_locks.clear()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'members.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_users(session_factory):
    async with session_factory() as session:
        return await seed_default_users(session, password=TEST_PASSWORD)


@pytest_asyncio.fixture
async def api_client(session_factory, seeded_users):
    from server import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def auth_headers(username: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(username)}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin")


@pytest.fixture
def laguna_headers():
    return auth_headers("laguna")


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def test_password():
    return TEST_PASSWORD
