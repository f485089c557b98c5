"""Forward-only migration runner for the lawcrawl schema.

The vec table (vec_passages) is NOT migration-managed; use ensure_vec_table().
"""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

_V1_SQL = """
CREATE TABLE IF NOT EXISTS crawl_jobs (
    id                TEXT PRIMARY KEY,
    state             TEXT NOT NULL,
    urls              TEXT NOT NULL DEFAULT '[]',
    max_urls          INTEGER NOT NULL DEFAULT 1000,
    status            TEXT NOT NULL DEFAULT 'pending'
                      CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
    web_urls_found    INTEGER,
    pdf_urls_found    INTEGER,
    error_message     TEXT,
    started_at        TEXT,
    completed_at      TEXT,
    duration_seconds  REAL,
    created_at        TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now')),
    updated_at        TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_crawl_jobs_state ON crawl_jobs(state, status);

CREATE TABLE IF NOT EXISTS passages (
    document_id       TEXT NOT NULL,
    chunk_number      INTEGER NOT NULL,
    number_of_chunks  INTEGER NOT NULL,
    text              TEXT NOT NULL,
    url               TEXT NOT NULL,
    state             TEXT NOT NULL,
    document_name     TEXT NOT NULL DEFAULT '',
    token_length      INTEGER NOT NULL DEFAULT 0,
    metadata          TEXT NOT NULL DEFAULT '{}',
    ingested_at       TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_passages_url ON passages(url);
CREATE INDEX IF NOT EXISTS idx_passages_state ON passages(state);

CREATE TABLE IF NOT EXISTS answer_cache (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    expires_at  REAL NOT NULL
);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
]


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
