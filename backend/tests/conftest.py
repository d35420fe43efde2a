"""
Pytest fixtures for test database, client, and seeded library data.

Each test gets its own database (a fresh SQLite file by default, or the
database named by TEST_DATABASE_URL) so concurrency tests can open
several independent sessions against it.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from library_lending.main import app
from library_lending.db.base import Base
from library_lending.db.session import get_db
from library_lending.models.user import User, ROLE_ADMIN
from library_lending.models.book import Book
from tests.factories import EVIDENCE, make_book, make_user


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create tables on a per-test database, drop them afterwards."""
    url = os.environ.get("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'library_test.db'}")
    test_engine = create_async_engine(url, echo=False)

    if test_engine.dialect.name == "sqlite":
        # Enforce foreign keys the way PostgreSQL does
        @event.listens_for(test_engine.sync_engine, "connect")
        def enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client whose requests each get their own session, committed or
    rolled back like `get_db` does. Rollbacks inside a request never expire
    the rows the fixtures hold in `db_session`.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def evidence() -> list[str]:
    return list(EVIDENCE)


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "reader@example.com", name="Reader")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "other@example.com", name="Other Reader")


@pytest_asyncio.fixture
async def blocked_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "blocked@example.com", name="Blocked Reader", is_blocked=True)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "admin@example.com", name="Librarian", role=ROLE_ADMIN)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return {"X-Admin-User-Id": str(admin_user.id)}


@pytest_asyncio.fixture
async def test_book(db_session: AsyncSession) -> Book:
    """A book with 2 copies, both on the shelf."""
    return await make_book(db_session, "LIB-0001", copies=2)


@pytest_asyncio.fixture
async def unavailable_book(db_session: AsyncSession) -> Book:
    """A book whose only copy is already out."""
    return await make_book(db_session, "LIB-0002", copies=1, available=0)
