"""Synchronous SQLAlchemy session for Celery workers (no async context needed)."""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import DATABASE_URL, _get_sqlite_path


def _normalize_sync_url(url: str) -> str:
    """
    Map the async driver URL used by the API onto a sync driver:
    sqlite+aiosqlite → sqlite, postgres(ql)/postgresql+asyncpg → postgresql+psycopg2.
    """
    if url.startswith("sqlite+aiosqlite://"):
        return "sqlite://" + url[len("sqlite+aiosqlite://"):]
    for prefix in ("postgres://", "postgresql://", "postgresql+asyncpg://"):
        if url.startswith(prefix):
            return "postgresql+psycopg2://" + url[len(prefix):]
    return url


_sqlite_path = _get_sqlite_path()
SYNC_DATABASE_URL = os.getenv("SYNC_DATABASE_URL") or (
    f"sqlite:///{_sqlite_path}" if _sqlite_path else _normalize_sync_url(DATABASE_URL)
)

_is_sqlite = SYNC_DATABASE_URL.startswith("sqlite")

sync_engine = create_engine(
    SYNC_DATABASE_URL,
    # check_same_thread is a SQLite-only option; must not be passed to psycopg2
    connect_args={"check_same_thread": False} if _is_sqlite else {},
)

SyncSession = sessionmaker(bind=sync_engine, expire_on_commit=False)
