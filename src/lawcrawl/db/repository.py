"""Repository pattern for all lawcrawl database operations.

Single interface for: passages, vec embeddings, crawl jobs, answer cache rows.
The vec table is created by ensure_vec_table; repository handles read + write.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone

from lawcrawl.db.models import CrawlJob, JobStatus, Passage
from lawcrawl.db.vectors import VEC_TABLE
from lawcrawl.errors import StorageError

_PASSAGE_COLUMNS = (
    "rowid, document_id, chunk_number, number_of_chunks, text, url, state, "
    "document_name, token_length, ingested_at"
)

_JOB_COLUMNS = (
    "id, state, urls, max_urls, status, web_urls_found, pdf_urls_found, "
    "error_message, started_at, completed_at, duration_seconds, created_at, updated_at"
)


def utcnow() -> str:
    """ISO-8601 UTC timestamp used for every stored time value."""
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise StorageError(f"{action} failed: {exc}") from exc


class Repository:
    """Data access layer for all lawcrawl database entities.

    Wraps an open sqlite3.Connection and provides typed methods for passages,
    vector search, crawl jobs and cached answers. The connection is owned by
    the caller and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see lawcrawl.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Passages
    # ------------------------------------------------------------------

    def add_passage(self, passage: Passage) -> int:
        """Insert one passage and its embedding. Returns the new rowid."""
        with _storage_errors("add passage"):
            try:
                rowid = self._insert_passage(passage)
            except Exception:
                self._conn.rollback()
                raise
            self._conn.commit()
        return rowid

    def replace_passages(
        self, urls: Sequence[str], passages: Sequence[Passage]
    ) -> tuple[int, int]:
        """Delete every passage stored for *urls*, then insert *passages*.

        Both steps run in one transaction, so a reader never sees a page
        half-replaced and a failure leaves the previous rows in place.

        Returns:
            ``(deleted, inserted)`` row counts.
        """
        with _storage_errors("replace passages"):
            try:
                deleted = self._delete_by_urls(urls)
                for passage in passages:
                    self._insert_passage(passage)
            except Exception:
                self._conn.rollback()
                raise
            self._conn.commit()
        return deleted, len(passages)

    def insert_passages(self, passages: Sequence[Passage]) -> int:
        """Insert *passages* and their embeddings in one transaction."""
        return self.replace_passages([], passages)[1]

    def delete_passages_by_urls(self, urls: Sequence[str]) -> int:
        """Delete all passages (and their vectors) whose url is in *urls*.

        Returns:
            Number of passage rows removed.
        """
        with _storage_errors("delete passages"):
            try:
                deleted = self._delete_by_urls(urls)
            except Exception:
                self._conn.rollback()
                raise
            self._conn.commit()
        return deleted

    def get_passage_by_rowid(self, rowid: int) -> Passage | None:
        """Return a passage by its SQLite rowid, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_PASSAGE_COLUMNS} FROM passages WHERE rowid = ?", (rowid,)
        ).fetchone()
        return _row_to_passage(row) if row else None

    def list_passages_by_url(self, url: str) -> list[Passage]:
        """Return the passages stored for *url* in chunk order."""
        rows = self._conn.execute(
            f"SELECT {_PASSAGE_COLUMNS} FROM passages WHERE url = ? ORDER BY chunk_number",
            (url,),
        ).fetchall()
        return [_row_to_passage(r) for r in rows]

    def count_passages(self, jurisdiction: str | None = None) -> int:
        """Count stored passages, optionally for one jurisdiction."""
        if jurisdiction is None:
            return self._conn.execute("SELECT COUNT(*) FROM passages").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM passages WHERE state = ?", (jurisdiction,)
        ).fetchone()[0]

    def count_embeddings(self) -> int:
        """Count rows in the vec table."""
        return self._conn.execute(f"SELECT COUNT(*) FROM {VEC_TABLE}").fetchone()[0]

    # ------------------------------------------------------------------
    # Vector search
    # ------------------------------------------------------------------

    def similarity_search(
        self, embedding: list[float], k: int, jurisdiction: str
    ) -> list[tuple[Passage, float]]:
        """Top-*k* passages for *jurisdiction*, best first.

        Returns ``(passage, similarity)`` pairs where similarity is
        ``1 - cosine distance``. Only passages tagged with *jurisdiction*
        are ever considered.
        """
        if k < 1:
            return []
        with _storage_errors("similarity search"):
            vec_rows = self._conn.execute(
                f"SELECT rowid, distance FROM {VEC_TABLE} "
                "WHERE embedding MATCH ? AND k = ? AND state = ? ORDER BY distance",
                (json.dumps(embedding), k, jurisdiction),
            ).fetchall()

            results: list[tuple[Passage, float]] = []
            for vec_row in vec_rows:
                passage = self.get_passage_by_rowid(vec_row["rowid"])
                if passage is not None and passage.jurisdiction == jurisdiction:
                    results.append((passage, 1.0 - vec_row["distance"]))
        return results

    # ------------------------------------------------------------------
    # Crawl jobs
    # ------------------------------------------------------------------

    def add_job(self, job: CrawlJob) -> CrawlJob:
        """Insert a new crawl job and return it as stored."""
        now = utcnow()
        with _storage_errors("create job"):
            self._conn.execute(
                """
                INSERT INTO crawl_jobs (id, state, urls, max_urls, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.id,
                    job.jurisdiction,
                    json.dumps(list(job.urls)),
                    job.max_urls,
                    job.status.value,
                    now,
                    now,
                ),
            )
            self._conn.commit()
        return self._require_job(job.id, "create job")

    def get_job(self, job_id: str) -> CrawlJob | None:
        """Return a crawl job by ID, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_JOB_COLUMNS} FROM crawl_jobs WHERE id = ?", (job_id,)
        ).fetchone()
        return _row_to_job(row) if row else None

    def _require_job(self, job_id: str, action: str) -> CrawlJob:
        job = self.get_job(job_id)
        if job is None:
            raise StorageError(f"{action} failed: no crawl job with id {job_id!r}")
        return job

    def list_jobs(
        self,
        jurisdiction: str | None = None,
        status: JobStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CrawlJob]:
        """Return jobs newest first, optionally filtered by state and status."""
        clauses: list[str] = []
        params: list[object] = []
        if jurisdiction is not None:
            clauses.append("state = ?")
            params.append(jurisdiction)
        if status is not None:
            clauses.append("status = ?")
            params.append(JobStatus(status).value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(
            f"SELECT {_JOB_COLUMNS} FROM crawl_jobs {where} "
            "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (*params, limit, offset),
        ).fetchall()
        return [_row_to_job(r) for r in rows]

    def update_job(self, job: CrawlJob) -> CrawlJob:
        """Persist the mutable fields of *job* and bump updated_at."""
        with _storage_errors("update job"):
            self._conn.execute(
                """
                UPDATE crawl_jobs SET
                    status = ?, web_urls_found = ?, pdf_urls_found = ?,
                    error_message = ?, started_at = ?, completed_at = ?,
                    duration_seconds = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    job.status.value,
                    job.web_urls_found,
                    job.pdf_urls_found,
                    job.error_message,
                    job.started_at,
                    job.completed_at,
                    job.duration_seconds,
                    utcnow(),
                    job.id,
                ),
            )
            self._conn.commit()
        return self._require_job(job.id, "update job")

    def update_job_progress(self, job_id: str, web_urls_found: int, pdf_urls_found: int) -> None:
        """Record the crawl counts for a job without touching its status."""
        with _storage_errors("update job progress"):
            self._conn.execute(
                """
                UPDATE crawl_jobs SET web_urls_found = ?, pdf_urls_found = ?, updated_at = ?
                WHERE id = ?
                """,
                (web_urls_found, pdf_urls_found, utcnow(), job_id),
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Answer cache rows
    # ------------------------------------------------------------------

    def get_cache_value(self, key: str, now: float) -> str | None:
        """Return the cached value for *key* unless it has expired."""
        row = self._conn.execute(
            "SELECT value, expires_at FROM answer_cache WHERE key = ?", (key,)
        ).fetchone()
        if row is None or row["expires_at"] <= now:
            return None
        return row["value"]

    def set_cache_value(self, key: str, value: str, expires_at: float) -> None:
        """Upsert a cache row."""
        self._conn.execute(
            """
            INSERT INTO answer_cache (key, value, expires_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                expires_at = excluded.expires_at
            """,
            (key, value, expires_at),
        )
        self._conn.commit()

    def delete_expired_cache(self, now: float) -> int:
        """Drop expired cache rows. Returns the number removed."""
        cur = self._conn.execute("DELETE FROM answer_cache WHERE expires_at <= ?", (now,))
        self._conn.commit()
        return cur.rowcount

    # ------------------------------------------------------------------
    # Internal helpers (no commit)
    # ------------------------------------------------------------------

    def _insert_passage(self, passage: Passage) -> int:
        ingested_at = passage.ingested_at or utcnow()
        passage.ingested_at = ingested_at
        cur = self._conn.execute(
            """
            INSERT INTO passages (document_id, chunk_number, number_of_chunks, text, url,
                                  state, document_name, token_length, metadata, ingested_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                passage.document_id,
                passage.chunk_number,
                passage.number_of_chunks,
                passage.text,
                passage.url,
                passage.jurisdiction,
                passage.document_name,
                passage.token_length,
                passage.metadata_json(),
                ingested_at,
            ),
        )
        rowid = cur.lastrowid
        self._conn.execute(
            f"INSERT INTO {VEC_TABLE}(rowid, state, embedding) VALUES (?, ?, ?)",
            (rowid, passage.jurisdiction, json.dumps(passage.embedding)),
        )
        passage.rowid = rowid
        return rowid

    def _delete_by_urls(self, urls: Sequence[str]) -> int:
        urls = list(dict.fromkeys(urls))
        if not urls:
            return 0
        placeholders = ",".join("?" * len(urls))
        rowids = [
            r[0]
            for r in self._conn.execute(
                f"SELECT rowid FROM passages WHERE url IN ({placeholders})", urls
            ).fetchall()
        ]
        if not rowids:
            return 0
        id_placeholders = ",".join("?" * len(rowids))
        self._conn.execute(
            f"DELETE FROM {VEC_TABLE} WHERE rowid IN ({id_placeholders})", rowids
        )
        self._conn.execute(
            f"DELETE FROM passages WHERE rowid IN ({id_placeholders})", rowids
        )
        return len(rowids)


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_passage(row: sqlite3.Row) -> Passage:
    return Passage(
        rowid=row["rowid"],
        document_id=row["document_id"],
        chunk_number=row["chunk_number"],
        number_of_chunks=row["number_of_chunks"],
        text=row["text"],
        url=row["url"],
        jurisdiction=row["state"],
        document_name=row["document_name"],
        token_length=row["token_length"],
        ingested_at=row["ingested_at"],
    )


def _row_to_job(row: sqlite3.Row) -> CrawlJob:
    return CrawlJob(
        id=row["id"],
        jurisdiction=row["state"],
        urls=json.loads(row["urls"]),
        max_urls=row["max_urls"],
        status=JobStatus(row["status"]),
        web_urls_found=row["web_urls_found"],
        pdf_urls_found=row["pdf_urls_found"],
        error_message=row["error_message"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        duration_seconds=row["duration_seconds"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
