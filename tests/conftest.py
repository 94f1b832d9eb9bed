"""
Pytest configuration and fixtures for the inventory engine tests.

Each test gets a fresh in-memory SQLite database (aiosqlite) with every
table created, and a session the test drives like a caller's unit of work.
"""
import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

# Set test environment before importing engine modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["INVENTORY_SYSTEM_ACTOR"] = "SYSTEM"

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from inventory_engine.core.database import create_all


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine) -> AsyncGenerator[AsyncSession, None]:
    """Async session bound to the per-test database."""
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create mock async database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.execute = AsyncMock()
    return db
