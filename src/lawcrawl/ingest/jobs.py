"""Crawl job tracker: persisted lifecycle of one ingestion request.

State machine::

    pending ──► processing ──► completed
       │            │
       └────────────┴───────► failed

``completed`` and ``failed`` are terminal. ``completed_at`` and
``duration_seconds`` are written once, in the same UPDATE as the terminal
status. Progress counters may be written any number of times while the job
is processing.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from lawcrawl.db.models import CrawlJob, JobStatus
from lawcrawl.db.repository import Repository, utcnow
from lawcrawl.errors import JobNotFound, JobStateError

logger = logging.getLogger(__name__)

DEFAULT_MAX_URLS = 1000

_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def _elapsed_seconds(start: str | None, end: str) -> float | None:
    if not start:
        return None
    return (datetime.fromisoformat(end) - datetime.fromisoformat(start)).total_seconds()


class JobTracker:
    """Owns every write to the crawl_jobs table."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def create(
        self, jurisdiction: str, urls: list[str], max_urls: int | None = None
    ) -> CrawlJob:
        job = CrawlJob(
            id=uuid.uuid4().hex,
            jurisdiction=jurisdiction,
            urls=list(urls),
            max_urls=max_urls or DEFAULT_MAX_URLS,
        )
        stored = self._repo.add_job(job)
        logger.info("Created crawl job %s for %s (%d urls)", stored.id, jurisdiction, len(urls))
        return stored

    def get(self, job_id: str) -> CrawlJob:
        """Return the job or raise JobNotFound."""
        job = self._repo.get_job(job_id)
        if job is None:
            raise JobNotFound(f"Crawl job not found: {job_id}")
        return job

    def list(
        self,
        jurisdiction: str | None = None,
        status: JobStatus | str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[CrawlJob]:
        """Jobs newest first, optionally filtered by state and status."""
        return self._repo.list_jobs(
            jurisdiction=jurisdiction,
            status=JobStatus(status) if status is not None else None,
            limit=limit if limit is not None else -1,
            offset=offset or 0,
        )

    def start(self, job_id: str) -> CrawlJob:
        job = self._transition(job_id, JobStatus.PROCESSING)
        if not job.started_at:
            job.started_at = utcnow()
        return self._repo.update_job(job)

    def update_progress(self, job_id: str, web_urls_found: int, pdf_urls_found: int) -> None:
        job = self.get(job_id)
        if job.status is not JobStatus.PROCESSING:
            raise JobStateError(
                f"Cannot record progress for job {job_id} in status '{job.status.value}'"
            )
        self._repo.update_job_progress(job_id, web_urls_found, pdf_urls_found)

    def complete(self, job_id: str, web_urls_found: int, pdf_urls_found: int) -> CrawlJob:
        job = self._transition(job_id, JobStatus.COMPLETED)
        job.web_urls_found = web_urls_found
        job.pdf_urls_found = pdf_urls_found
        self._stamp_terminal(job)
        logger.info("Crawl job %s completed in %.2fs", job_id, job.duration_seconds or 0.0)
        return self._repo.update_job(job)

    def fail(self, job_id: str, message: str) -> CrawlJob:
        job = self._transition(job_id, JobStatus.FAILED)
        job.error_message = message
        self._stamp_terminal(job)
        logger.warning("Crawl job %s failed: %s", job_id, message)
        return self._repo.update_job(job)

    # ------------------------------------------------------------------

    def _transition(self, job_id: str, target: JobStatus) -> CrawlJob:
        job = self.get(job_id)
        if target not in _TRANSITIONS[job.status]:
            raise JobStateError(
                f"Illegal transition for job {job_id}: "
                f"'{job.status.value}' -> '{target.value}'"
            )
        job.status = target
        return job

    @staticmethod
    def _stamp_terminal(job: CrawlJob) -> None:
        now = utcnow()
        job.completed_at = now
        # A job failed straight from pending counts from its creation time.
        job.duration_seconds = _elapsed_seconds(job.started_at or job.created_at, now)
