"""Pytest fixtures for testing."""
import os

# Must run before any app import that triggers Settings validation.
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("FETCH_METADATA_ON_CREATE", "false")

from collections.abc import AsyncGenerator, Generator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from testcontainers.postgres import PostgresContainer  # noqa: E402

from core.config import Settings  # noqa: E402
from models.base import Base  # noqa: E402
from stores.base import UserRecord  # noqa: E402
from stores.memory_store import MemoryBookmarkStore  # noqa: E402
from stores.sql_store import SqlBookmarkStore  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    """Settings for an isolated run: in-memory store, no outbound fetches."""
    return Settings(
        storage_backend="memory",
        fetch_metadata_on_create=False,
        jwt_secret="test-secret-that-is-at-least-32-characters",
    )


@pytest.fixture
def store() -> MemoryBookmarkStore:
    """A fresh in-memory store per test."""
    return MemoryBookmarkStore()


@pytest.fixture
async def user(store: MemoryBookmarkStore) -> UserRecord:
    """An account in the in-memory store."""
    return await store.create_user("alice@example.com", "not-a-real-hash", "Alice")


@pytest.fixture
async def other_user(store: MemoryBookmarkStore) -> UserRecord:
    """A second account, for isolation checks."""
    return await store.create_user("bob@example.com", "not-a-real-hash", "Bob")


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer]:
    """Start a PostgreSQL container for the test session; skip when Docker is missing."""
    container = PostgresContainer("postgres:16", driver="asyncpg")
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"PostgreSQL container unavailable: {e}")
    try:
        yield container
    finally:
        container.stop()


@pytest.fixture(scope="session")
def database_url(postgres_container: PostgresContainer) -> str:
    """Get the database URL from the container."""
    return postgres_container.get_connection_url()


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine for testing."""
    engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_connection(async_engine: AsyncEngine) -> AsyncGenerator[AsyncConnection]:
    """
    Create a connection with a transaction that will be rolled back after the test.

    This provides test isolation - each test runs in its own transaction
    that is rolled back, so tests don't affect each other.
    """
    async with async_engine.connect() as connection:
        transaction = await connection.begin()
        try:
            yield connection
        finally:
            await transaction.rollback()


@pytest.fixture
async def db_session(db_connection: AsyncConnection) -> AsyncGenerator[AsyncSession]:
    """
    Create an async session bound to the test transaction.

    Uses savepoints so the store's own begin_nested() calls work inside the
    outer test transaction.
    """
    session_factory = async_sessionmaker(
        bind=db_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
def sql_store(db_session: AsyncSession) -> SqlBookmarkStore:
    """PostgreSQL-backed store over the test session."""
    return SqlBookmarkStore(db_session)
