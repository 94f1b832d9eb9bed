"""
Database configuration and session management

The engine is built lazily so importing models never needs a live driver.
Production gets a bounded connection pool; development a small one.
"""
from contextlib import asynccontextmanager
from typing import Any, Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from inventory_engine.core.config import settings

Base = declarative_base()

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def _pool_config() -> dict:
    if settings.DATABASE_URL.startswith("sqlite"):
        return {}
    if settings.ENVIRONMENT == "production":
        return {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_pre_ping": True,  # Verify connections before use
        }
    return {
        "pool_size": 2,
        "max_overflow": 5,
        "pool_pre_ping": True,
    }


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            **_pool_config(),
        )
    return _engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def create_all(engine: Optional[AsyncEngine] = None) -> None:
    """Create every table registered on Base."""
    # Register all mappers before create_all
    import inventory_engine.models  # noqa: F401

    async with (engine or get_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def get_db_session():
    """
    Context manager for database sessions outside a request context.

    Use this in:
    - Maintenance CLI commands
    - Background jobs
    - Service-to-service calls

    Usage:
        async with get_db_session() as db:
            await record_movement(db, data)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


class Queryable(Protocol):
    """
    Transaction handle accepted by every engine operation.

    An ``AsyncSession`` satisfies it whether the caller already began a
    transaction (``async with db.begin():``) or lets the session autobegin.
    The engine never commits; the caller owns the unit of work.
    """

    async def execute(self, statement: Any, *args: Any, **kwargs: Any) -> Any: ...

    def add(self, instance: Any) -> None: ...

    async def flush(self, objects: Any = None) -> None: ...
