"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.

Production runs on PostgreSQL (asyncpg) with a sized pool. SQLite is for
tests and local experiments: an in-memory database exists per connection,
so it gets exactly one shared connection (StaticPool).
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from passgate.config import settings


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_async_engine(
            url, echo=echo, pool_size=5, max_overflow=15, pool_pre_ping=True
        )
    if parsed.database in (None, "", ":memory:"):
        return create_async_engine(url, echo=echo, poolclass=StaticPool)
    return create_async_engine(url, echo=echo)


# echo=True in dev to see SQL queries.
engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory — each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
