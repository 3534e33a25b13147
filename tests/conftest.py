"""Test configuration and fixtures for preload_counts."""

from dotenv import load_dotenv
import pytest
import asyncio
import os
import sys
from typing import AsyncGenerator, List
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from tests.models import Base

# Try to load environment variables from .env file
load_dotenv()


@pytest.fixture(scope="session", autouse=True)
def event_loop_policy():
    """Set event loop policy for Windows compatibility."""
    if sys.platform.startswith("win"):
        # Use SelectorEventLoop instead of ProactorEventLoop on Windows
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    yield asyncio.get_event_loop_policy()


@pytest.fixture(scope="function")
async def engine():
    """Create a test database engine for each test function."""
    # Check for PRELOAD_COUNTS_TEST_DATABASE_URL environment variable
    test_db_url = os.getenv('PRELOAD_COUNTS_TEST_DATABASE_URL')

    if test_db_url:
        engine = create_async_engine(
            test_db_url,
            echo=False,
            future=True,
            pool_size=1,
            max_overflow=0,
            pool_pre_ping=True,
        )
        # Ensure a clean slate before tests: drop then create all tables
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        is_external_db = True
        print(f"Using external database: {test_db_url}")
    else:
        # Use in-memory SQLite for tests; one shared connection keeps the schema alive
        engine = create_async_engine(
            "sqlite+aiosqlite:///:memory:",
            echo=True,  # Enable SQL logging for debugging with SQLite
            future=True,
            poolclass=StaticPool,
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        is_external_db = False
        print("Using SQLite in-memory database")

    yield engine

    # Clean up: for external databases, drop all tables
    if is_external_db:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
        except Exception as e:
            print(f"Failed to clean up external database: {e}")

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a new database session for each test function."""
    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session


@pytest.fixture(scope="function")
def sql_statements(db_session):
    """Collect SELECT statements executed through the session's engine."""
    bind = db_session.get_bind()
    statements: List[str] = []

    def _capture(conn, cursor, statement, parameters, context, executemany):  # noqa: ANN001
        if str(statement).lstrip().upper().startswith("SELECT"):
            statements.append(str(statement))

    event.listen(bind, "before_cursor_execute", _capture)
    try:
        yield statements
    finally:
        event.remove(bind, "before_cursor_execute", _capture)


# Import fixtures from fixtures module
from tests.fixtures import (  # noqa: E402,F401
    sample_posts,
    sample_articles,
    sample_comments,
    sample_votes,
    sample_shares,
    sample_categories,
    populated_db,
)
