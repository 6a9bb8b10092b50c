"""
Database Initialization

Creates the SQLite schema for the storefront and exposes the async
session factory used by services and FastAPI dependencies.
"""
import logging
from pathlib import Path
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import settings
from .models import Base

logger = logging.getLogger(__name__)


def build_engine(database_path: str, **engine_kwargs) -> AsyncEngine:
    """
    Create an aiosqlite engine for the given database file.

    Extra keyword arguments are passed to create_async_engine (tests use
    this to select NullPool).
    """
    options = {
        "echo": False,
        "connect_args": {
            "timeout": 30,  # seconds to wait for the SQLite write lock
            "check_same_thread": False,
        },
    }
    options.update(engine_kwargs)
    return create_async_engine(f"sqlite+aiosqlite:///{database_path}", **options)


def build_session_factory(db_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


async def initialize_database(db_engine: AsyncEngine) -> None:
    """
    Create all tables and switch SQLite to WAL mode.

    Called during FastAPI startup; safe to run repeatedly.
    """
    url = db_engine.url
    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    async with db_engine.begin() as conn:
        # WAL lets catalog readers proceed while a sync transaction is open
        await conn.exec_driver_sql("PRAGMA journal_mode=WAL")
        await conn.run_sync(Base.metadata.create_all)

    logger.info(f"Database initialized at {url.database}")


# ============================================================================
# Application-wide engine and session factory
# ============================================================================

engine = build_engine(settings.database_path, pool_pre_ping=True, pool_recycle=3600)

AsyncSessionLocal = build_session_factory(engine)

