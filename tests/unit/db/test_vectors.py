"""Tests for the vec_passages virtual table."""

from __future__ import annotations

import pytest

from lawcrawl.db.vectors import VEC_TABLE, ensure_vec_table, table_dimensions
from lawcrawl.errors import EmbeddingDimensionError


def test_ensure_vec_table_returns_name(tmp_db):
    assert ensure_vec_table(tmp_db, 4) == VEC_TABLE


def test_ensure_vec_table_rejects_non_positive(tmp_db):
    with pytest.raises(ValueError, match="dimensions"):
        ensure_vec_table(tmp_db, 0)


def test_ensure_vec_table_dimension_mismatch(tmp_db):
    with pytest.raises(EmbeddingDimensionError) as excinfo:
        ensure_vec_table(tmp_db, 384)
    assert excinfo.value.expected == 4
    assert excinfo.value.actual == 384


def test_stored_sql_declares_partition_and_metric(tmp_db):
    sql = tmp_db.execute(
        "SELECT sql FROM sqlite_master WHERE name = ?", (VEC_TABLE,)
    ).fetchone()[0]
    assert "partition key" in sql
    assert "distance_metric=cosine" in sql


@pytest.mark.parametrize("sql,expected", [
    ("CREATE VIRTUAL TABLE v USING vec0(embedding float[384])", 384),
    ("CREATE VIRTUAL TABLE v USING vec0(state text partition key, embedding float[4])", 4),
    ("CREATE TABLE t (x INTEGER)", None),
    ("", None),
])
def test_table_dimensions(sql, expected):
    assert table_dimensions(sql) == expected
