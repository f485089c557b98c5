"""sqlite-vec virtual table for passage embeddings.

One vec0 table, partitioned by jurisdiction so a KNN query only scans the
requested state's vectors. Distances are cosine distances; similarity is
``1 - distance``.
"""

from __future__ import annotations

import re
import sqlite3

from lawcrawl.errors import EmbeddingDimensionError

VEC_TABLE = "vec_passages"

_DIMS_RE = re.compile(r"float\[(\d+)\]")


def ensure_vec_table(conn: sqlite3.Connection, dimensions: int) -> str:
    """Create the vec_passages virtual table if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        dimensions: Embedding vector dimensions (384 for all-MiniLM-L6-v2).

    Returns:
        The table name.

    Raises:
        ValueError: If *dimensions* is not positive.
        EmbeddingDimensionError: If the table exists with another width.
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    existing = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (VEC_TABLE,)
    ).fetchone()

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {VEC_TABLE} USING vec0("
            "state text partition key, "
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )
        conn.commit()
        return VEC_TABLE

    stored = table_dimensions(existing[0])
    if stored is not None and stored != dimensions:
        raise EmbeddingDimensionError(expected=stored, actual=dimensions)
    return VEC_TABLE


def table_dimensions(create_sql: str) -> int | None:
    """Parse the vector width out of a vec0 CREATE statement."""
    match = _DIMS_RE.search(create_sql or "")
    return int(match.group(1)) if match else None
