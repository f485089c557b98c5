"""Tests for the migration runner and schema initialization."""

from __future__ import annotations

import sqlite3

import pytest

from lawcrawl.db.connection import Database
from lawcrawl.db.migrations import MIGRATIONS, run_migrations
from lawcrawl.db.schema import initialize
from lawcrawl.errors import EmbeddingDimensionError


def _tables(conn) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {r[0] for r in rows}


def test_run_migrations_creates_tables(tmp_path):
    conn = Database(tmp_path / "db.sqlite").connect()
    run_migrations(conn)
    tables = _tables(conn)
    conn.close()
    assert {"schema_version", "crawl_jobs", "passages", "answer_cache"} <= tables


def test_run_migrations_records_latest_version(tmp_path):
    conn = Database(tmp_path / "db.sqlite").connect()
    run_migrations(conn)
    version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
    conn.close()
    assert version == MIGRATIONS[-1][0]


def test_run_migrations_idempotent(tmp_path):
    conn = Database(tmp_path / "db.sqlite").connect()
    run_migrations(conn)
    run_migrations(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    conn.close()
    assert count == len(MIGRATIONS)


def test_job_status_check_constraint(tmp_db):
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO crawl_jobs (id, state, status) VALUES ('j1', 'NY', 'bogus')"
        )


def test_initialize_creates_vec_table(tmp_path):
    conn = Database(tmp_path / "db.sqlite").connect()
    initialize(conn, 8)
    tables = _tables(conn)
    conn.close()
    assert "vec_passages" in tables


def test_initialize_twice_same_dimensions(tmp_path):
    conn = Database(tmp_path / "db.sqlite").connect()
    initialize(conn, 8)
    initialize(conn, 8)
    conn.close()


def test_initialize_with_other_dimensions_raises(tmp_path):
    conn = Database(tmp_path / "db.sqlite").connect()
    initialize(conn, 8)
    with pytest.raises(EmbeddingDimensionError, match="expected 8, got 16"):
        initialize(conn, 16)
    conn.close()
