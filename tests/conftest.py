"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from fakes import TEST_DIMENSIONS, KeywordEmbedder
from lawcrawl.db.connection import Database
from lawcrawl.db.repository import Repository
from lawcrawl.db.schema import initialize


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".lawcrawl.db")
    conn = db.connect()
    initialize(conn, TEST_DIMENSIONS)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db) -> Repository:
    return Repository(tmp_db)


@pytest.fixture
def embedder() -> KeywordEmbedder:
    """Keyword embedder matching the tmp_db vector width."""
    return KeywordEmbedder()
