"""SQLite connection management."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from vidpipe.core.constants import DEFAULT_DB_PATH


def get_connection(db_path: Path | None = None) -> sqlite3.Connection:
    """Get a SQLite connection with WAL mode and foreign keys enabled.

    The connection runs in autocommit mode and may be shared between worker
    threads; callers serialize access and open transactions explicitly
    (see ``Repository.atomic``).
    """
    path = db_path or DEFAULT_DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn
