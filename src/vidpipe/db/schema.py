"""Database migrations with schema_version tracking."""

from __future__ import annotations

import sqlite3

MIGRATIONS: list[str] = [
    # Version 1: Initial schema
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER NOT NULL,
        applied_at TEXT DEFAULT (datetime('now'))
    );

    CREATE TABLE IF NOT EXISTS videos (
        id TEXT PRIMARY KEY,
        creator_id TEXT NOT NULL,
        title TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        description TEXT,
        category_id TEXT,
        tags_json TEXT NOT NULL DEFAULT '[]',
        raw_locator TEXT NOT NULL,
        media_locator TEXT NOT NULL,
        media_url TEXT,
        thumbnail_locator TEXT,
        thumbnail_url TEXT,
        duration_sec INTEGER,
        view_count INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'PROCESSING',
        published_at TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_videos_status ON videos(status);

    CREATE TABLE IF NOT EXISTS processing_jobs (
        id TEXT PRIMARY KEY,
        video_id TEXT NOT NULL REFERENCES videos(id) ON DELETE CASCADE,
        status TEXT NOT NULL DEFAULT 'QUEUED',
        progress INTEGER NOT NULL DEFAULT 0,
        error_message TEXT,
        resolution TEXT,
        queued_at TEXT NOT NULL,
        started_at TEXT,
        completed_at TEXT
    );
    CREATE INDEX IF NOT EXISTS idx_jobs_video ON processing_jobs(video_id, queued_at);
    CREATE INDEX IF NOT EXISTS idx_jobs_status ON processing_jobs(status, completed_at);

    -- At most one active job per video
    CREATE UNIQUE INDEX IF NOT EXISTS idx_jobs_one_active
        ON processing_jobs(video_id) WHERE status IN ('QUEUED', 'PROCESSING');
    """,
]


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Get the current schema version, or 0 if no schema exists."""
    try:
        row = conn.execute(
            "SELECT MAX(version) FROM schema_version"
        ).fetchone()
        return row[0] or 0 if row else 0
    except sqlite3.OperationalError:
        return 0


def migrate(conn: sqlite3.Connection) -> int:
    """Run pending migrations. Returns the final schema version."""
    current = get_schema_version(conn)

    for i, sql in enumerate(MIGRATIONS, start=1):
        if i <= current:
            continue
        conn.executescript(sql)
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (i,))
        conn.commit()

    return len(MIGRATIONS)
