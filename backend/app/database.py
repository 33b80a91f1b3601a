"""
EdgeGate Backend — Database Session Management
===============================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   Creates an async engine with connection pooling, provides a session
       dependency that auto-commits on success and auto-rolls-back on error.
Who:   Used by route handlers via Depends(), and by the session service
       (which runs inside the admission middleware, outside DI).
When:  Engine is created at module import; sessions are created per-request.

Drivers:
    Production: postgresql+asyncpg (pooled)
    Tests/local: sqlite+aiosqlite (SQLite pools reject pool_size/max_overflow,
    so those options are only passed to server databases)
"""

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


def _engine_options(url: str) -> Dict[str, Any]:
    """Pool options for server databases; SQLite gets the driver defaults."""
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
# What: The async engine owns the connection pool and executes SQL
# Pool sizing comes from settings (DB_POOL_SIZE, DB_MAX_OVERFLOW); echo is on
# only at LOG_LEVEL=DEBUG
engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

# ── Session Factory ───────────────────────────────────────────────────────
# What: One AsyncSession per request (routes) or per lookup (admission)
# expire_on_commit=False: attributes stay readable after commit (no lazy
# reload outside the session context)
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
# What: Declarative base for User, Account, Session and Post
# How: alembic/env.py imports the models so every table registers here
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object, which Alembic reads for migrations.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back and re-raises for the global error handler
        5. Always: closes the session (returns connection to pool)

    Example usage in a route:
        @router.get("/posts")
        async def list_posts(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            # Handler returned normally: persist its writes
            await session.commit()
        except Exception:
            # Any failure, DB or not, discards partial writes
            await session.rollback()
            raise  # The global handlers turn this into a JSON error
        finally:
            # Return the connection to the pool
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Close all pooled connections. Called from the lifespan shutdown."""
    await engine.dispose()
