"""
Database connection and initialization.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from competition_engine import config

from .schema import all_schema_sql

logger = logging.getLogger(__name__)


def _default_db_path() -> Path:
    return Path(config.DB_PATH)


_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using default."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path."""
    if _db_path is not None:
        return _db_path
    return _default_db_path()


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Return a new SQLite connection.
    Use as context manager or ensure close() is called.
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Commit everything written inside the block, or roll all of it back.
    Service commands run inside one of these so a rejected command leaves no partial writes.
    """
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


def init_db(db_path: str | Path | None = None) -> None:
    """Create or ensure all tables exist."""
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(all_schema_sql())
        conn.commit()
    finally:
        conn.close()
    logger.info("database initialized path=%s", path)
