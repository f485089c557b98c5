"""lawcrawl database layer."""

from lawcrawl.db.connection import Database
from lawcrawl.db.migrations import MIGRATIONS, run_migrations
from lawcrawl.db.schema import initialize
from lawcrawl.db.vectors import VEC_TABLE, ensure_vec_table

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "VEC_TABLE",
]
