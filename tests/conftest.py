"""Shared test configuration and fixtures.

Uses a transactional rollback strategy per test for full isolation:
- Each test runs inside an outer transaction that rolls back after the test.
- Service code may open SAVEPOINTs (archival does) inside that transaction.
- ``TEST_DATABASE_URL`` selects the database; it defaults to in-memory SQLite.
"""

import os
import uuid
from collections.abc import AsyncGenerator

# Cheap hashes keep the suite fast; must be set before settings load.
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

import frontdesk.models  # noqa: F401
from frontdesk.auth.jwt import create_token_pair
from frontdesk.auth.passwords import hash_password
from frontdesk.database import Base, get_db
from frontdesk.main import app
from frontdesk.models.user import User
from tests.factories import booking_payload

# ---------------------------------------------------------------------------
# Test database engine
# ---------------------------------------------------------------------------

_test_db_url = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


def _make_engine():
    if not _test_db_url.startswith("sqlite"):
        return create_async_engine(_test_db_url, echo=False, pool_pre_ping=True)

    engine = create_async_engine(
        _test_db_url,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


# ---------------------------------------------------------------------------
# Session-scoped: create / drop all tables once per test session
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_engine():
    """Create a session-scoped engine tied to the session event loop."""
    engine = _make_engine()
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def setup_test_db(test_engine):
    """Create all tables at the start of the session and drop them at the end."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Per-test: transactional rollback for isolation
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_session(test_engine, setup_test_db) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back.

    ``join_transaction_mode="create_savepoint"`` keeps the outer transaction
    intact when code under test commits or rolls back.
    """
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(
            bind=connection,
            expire_on_commit=False,
            join_transaction_mode="create_savepoint",
        )

        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session
        await db_session.flush()

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Convenience fixtures: users per role
# ---------------------------------------------------------------------------


async def _make_user(db_session: AsyncSession, role: str, is_active: bool = True) -> User:
    unique = uuid.uuid4().hex[:8]
    user = User(
        email=f"{role}-{unique}@test.com",
        hashed_password=hash_password("testpass123"),
        name=f"Test {role.title()}",
        is_active=is_active,
        role=role,
    )
    db_session.add(user)
    await db_session.flush()
    await db_session.refresh(user)
    return user


def _headers_for(user: User) -> dict[str, str]:
    tokens = create_token_pair(str(user.id), user.role)
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """A front-desk staff account."""
    return await _make_user(db_session, "staff")


@pytest_asyncio.fixture
async def manager_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "manager")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "admin")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    """Authorization headers for the staff user."""
    return _headers_for(test_user)


@pytest_asyncio.fixture
async def manager_headers(manager_user: User) -> dict[str, str]:
    return _headers_for(manager_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict[str, str]:
    return _headers_for(admin_user)


# ---------------------------------------------------------------------------
# Convenience fixtures: bookings
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_booking(client: AsyncClient, auth_headers: dict) -> dict:
    """Create and return a booking via the API."""
    response = await client.post("/api/v1/bookings", json=booking_payload(), headers=auth_headers)
    assert response.status_code == 201, f"Failed to create test booking: {response.text}"
    return response.json()
