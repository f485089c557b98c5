"""Error taxonomy shared by the ingestion pipeline and the query engine.

Every error carries a machine-checkable ``kind`` and a human-readable message.
``http_status`` is the status an HTTP front end should map the error to; the
CLI uses it only to pick an exit path.

CacheError is never fatal: the query engine logs it and carries on.
"""

from __future__ import annotations


class LawcrawlError(Exception):
    """Base class for all lawcrawl errors."""

    kind: str = "internal_error"
    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        """Return the caller-facing error body (no stack trace)."""
        return {"error": self.kind, "message": self.message}


class InvalidInput(LawcrawlError):
    """Malformed request payload: empty question, non-list URLs, bad URL strings."""

    kind = "invalid_input"
    http_status = 400


class CrawlFailure(LawcrawlError):
    """The crawl produced no usable web pages."""

    kind = "crawl_failure"
    http_status = 400


class EmbeddingDimensionError(LawcrawlError):
    """An embedding vector has the wrong length."""

    kind = "embedding_dimension_error"
    http_status = 500

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Invalid embedding dimensions: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class StorageError(LawcrawlError):
    """Vector or job store unavailable or rejected a statement."""

    kind = "storage_error"
    http_status = 500


class CacheError(LawcrawlError):
    """Answer cache backend failed. Callers treat this as a miss / skipped write."""

    kind = "cache_error"
    http_status = 500


class UpstreamModelError(LawcrawlError):
    """The embedding or language model call failed."""

    kind = "upstream_model_error"
    http_status = 500


class JobNotFound(LawcrawlError):
    """No crawl job exists with the requested id."""

    kind = "job_not_found"
    http_status = 404


class JobStateError(InvalidInput):
    """A crawl job transition would regress or leave a terminal state."""

    kind = "invalid_job_transition"
