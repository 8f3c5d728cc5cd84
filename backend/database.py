"""Async SQLAlchemy engine and session factory for FastAPI."""

import os
import logging
import sqlite3
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "sqlite+aiosqlite:///./instance/notes.db",
)

_is_sqlite = DATABASE_URL.startswith("sqlite")


class Base(DeclarativeBase):
    pass


def _get_sqlite_path() -> str | None:
    """Return the filesystem path for the SQLite file, or None for non-SQLite / in-memory URLs."""
    if not _is_sqlite or ":memory:" in DATABASE_URL:
        return None
    path = DATABASE_URL.replace("sqlite+aiosqlite:///", "")
    if path.startswith("./"):
        path = os.path.join(os.path.dirname(__file__), path[2:])
    return os.path.abspath(path)


def _prepare_sqlite_file() -> None:
    """
    Create the directory for the SQLite file and flush a WAL left behind by a
    hard kill, so the async driver never opens a half-written database.
    """
    db_path = _get_sqlite_path()
    if not db_path:
        return
    os.makedirs(os.path.dirname(db_path), exist_ok=True)
    if os.path.exists(db_path + "-wal"):
        try:
            con = sqlite3.connect(db_path, timeout=5)
            con.execute("PRAGMA wal_checkpoint(FULL)")
            con.close()
            logger.info("database.wal_checkpoint.ok")
        except sqlite3.Error as exc:
            logger.warning("database.wal_checkpoint.failed: %s", exc)


_prepare_sqlite_file()

engine = create_async_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    echo=False,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


async def init_db():
    """Create all tables and enable WAL mode for SQLite."""
    async with engine.begin() as conn:
        if _is_sqlite and _get_sqlite_path():
            try:
                await conn.execute(text("PRAGMA journal_mode=WAL"))
            except Exception as wal_exc:
                # the default rollback journal still works
                logger.warning("database.wal_mode.failed (non-fatal): %s", wal_exc)
        from models_async import Base as ModelsBase  # noqa: F401
        await conn.run_sync(ModelsBase.metadata.create_all)
