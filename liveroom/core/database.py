from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ..shared.models.base import Base
from ..shared.utils.logger import get_logger
from .config import settings

logger = get_logger(__name__)

__all__ = [
    "Base",
    "engine",
    "AsyncSessionLocal",
    "init_engine",
    "get_db",
    "get_session",
    "upsert_insert",
    "check_connection",
]


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # SQLite files are shared between connections; pooling buys nothing
        return {"poolclass": NullPool}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": 30,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine(url: str) -> AsyncEngine:
    """(Re)create the global engine and session factory for the given URL."""
    global engine, AsyncSessionLocal

    new_engine = create_async_engine(url, **_engine_kwargs(url))
    if new_engine.dialect.name == "sqlite":
        event.listen(new_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    engine = new_engine
    AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    logger.debug(f"Database engine initialised for dialect {engine.dialect.name}")
    return engine


engine: AsyncEngine
AsyncSessionLocal: async_sessionmaker
init_engine(settings.DATABASE_URL)


@asynccontextmanager
async def get_db() -> AsyncIterator[AsyncSession]:
    """Unit of work: repositories commit explicitly, anything unfinished is rolled back."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency flavour of get_db()."""
    async with get_db() as session:
        yield session


def upsert_insert(session: AsyncSession, model):
    """Dialect-native INSERT that supports ON CONFLICT clauses."""
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise RuntimeError(f"Dialect {dialect} has no ON CONFLICT support")


async def init_db():
    # Migrations own the schema everywhere except throwaway local databases
    if settings.ENVIRONMENT == "local":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    else:
        logger.info("Skipping auto table creation outside local environment")


async def check_connection() -> bool:
    try:
        async with engine.connect():
            return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False
