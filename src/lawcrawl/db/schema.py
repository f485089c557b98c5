"""Database schema initialization."""

from __future__ import annotations

import sqlite3

from lawcrawl.db.migrations import run_migrations
from lawcrawl.db.vectors import ensure_vec_table

DEFAULT_DIMENSIONS = 384


def initialize(conn: sqlite3.Connection, dimensions: int = DEFAULT_DIMENSIONS) -> None:
    """Run migrations and create the vec table (idempotent)."""
    run_migrations(conn)
    ensure_vec_table(conn, dimensions)
