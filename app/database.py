"""Database engine, sessions and connectivity checks."""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings

_SCHEME_PREFIXES = ("postgresql+asyncpg://", "postgresql+psycopg2://", "postgresql://", "postgres://")


def _with_scheme(url: str, scheme: str) -> str:
    for prefix in _SCHEME_PREFIXES:
        if url.startswith(prefix):
            return scheme + url[len(prefix) :]
    return url


def async_database_url(url: str) -> str:
    """Point a Postgres URL (including Heroku-style ``postgres://``) at asyncpg."""
    return _with_scheme(url, "postgresql+asyncpg://")


def sync_database_url(url: str) -> str:
    """Point a Postgres URL at psycopg2, for Alembic."""
    return _with_scheme(url, "postgresql+psycopg2://")


def _server_settings() -> dict[str, str]:
    server_settings = {"application_name": settings.app_name}
    if settings.db_statement_timeout_ms:
        server_settings["statement_timeout"] = str(settings.db_statement_timeout_ms)
    return server_settings


engine: AsyncEngine = create_async_engine(
    async_database_url(settings.database_url),
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_recycle=3600,
    connect_args={"server_settings": _server_settings()},
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session.

    Services commit explicitly; anything left open when a request fails is
    rolled back, which also releases clinic booking locks.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
