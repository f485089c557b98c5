"""Ingestion orchestrator: crawl → fetch → normalise → chunk → embed → replace.

IngestionPipeline turns a list of web URLs into stored passages for one
jurisdiction. IngestionService wraps it in the crawl-job lifecycle: every
exception raised after the job row exists moves the job to ``failed`` before
it propagates. ``submit()`` runs the same work on an executor and returns the
job id straight away; the job row is then the only progress signal.
"""

from __future__ import annotations

import logging
import time
import urllib.parse
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from typing import Any

from lawcrawl.db.models import Passage
from lawcrawl.db.repository import Repository, utcnow
from lawcrawl.errors import CrawlFailure, EmbeddingDimensionError, InvalidInput
from lawcrawl.ingest.chunker import SemanticChunk, SemanticChunker
from lawcrawl.ingest.crawler import Crawler, CrawlResult
from lawcrawl.ingest.embeddings import Embedder
from lawcrawl.ingest.jobs import DEFAULT_MAX_URLS, JobTracker
from lawcrawl.ingest.normalizer import normalize_html
from lawcrawl.ingest.uploader import AssetUploader, state_prefix
from lawcrawl.ingest.web import WebFetcher

logger = logging.getLogger(__name__)

NO_WEB_PAGES = "The crawler did not find any valid web pages to process"


# ------------------------------------------------------------------
# Request / response shapes
# ------------------------------------------------------------------


def is_valid_url(url: object) -> bool:
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parsed = urllib.parse.urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_jurisdiction(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput("state must be a non-empty string")
    return value.strip()


@dataclass
class IngestRequest:
    jurisdiction: str
    urls: list[str]
    max_urls: int = DEFAULT_MAX_URLS
    discover: bool = True  # False: ingest exactly these URLs, no link following

    @classmethod
    def parse(
        cls, payload: dict[str, Any], jurisdiction: object, *, discover: bool = True
    ) -> IngestRequest:
        """Validate an ``{urls, maxUrls?}`` payload.

        Unparseable URLs are dropped; if none remain the request is rejected.

        Raises:
            InvalidInput: On a missing/empty url list, bad maxUrls or state.
        """
        state = parse_jurisdiction(jurisdiction)
        urls = payload.get("urls") if isinstance(payload, dict) else None
        if not isinstance(urls, list) or not urls:
            raise InvalidInput("urls must be a non-empty array of strings")

        valid = [u.strip() for u in urls if is_valid_url(u)]
        if not valid:
            raise InvalidInput("No valid URLs provided")
        dropped = len(urls) - len(valid)
        if dropped:
            logger.warning("Dropped %d invalid URL(s) from request", dropped)

        max_urls = payload.get("maxUrls", DEFAULT_MAX_URLS)
        if max_urls is None:
            max_urls = DEFAULT_MAX_URLS
        if isinstance(max_urls, bool) or not isinstance(max_urls, int) or max_urls < 1:
            raise InvalidInput("maxUrls must be a positive integer")

        return cls(
            jurisdiction=state,
            urls=list(dict.fromkeys(valid)),
            max_urls=max_urls,
            discover=discover,
        )


@dataclass
class IngestResponse:
    job_id: str
    input_urls: int
    web_urls: list[str] = field(default_factory=list)
    pdf_urls: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobId": self.job_id,
            "stats": {
                "inputUrls": self.input_urls,
                "crawledWebUrls": len(self.web_urls),
                "crawledPdfUrls": len(self.pdf_urls),
            },
            "crawledUrls": {"web": list(self.web_urls), "pdf": list(self.pdf_urls)},
        }


@dataclass
class PipelineStats:
    pages_processed: int = 0
    pages_skipped: int = 0
    passages_deleted: int = 0
    passages_written: int = 0


# ------------------------------------------------------------------
# Orchestrator
# ------------------------------------------------------------------


class IngestionPipeline:
    """Owns every write to the passages table.

    Args:
        repo:     Open Repository.
        fetcher:  Fetches page HTML (with the rendering-mode check).
        chunker:  Semantic chunker.
        embedder: Embeds chunk texts for storage.
    """

    def __init__(
        self,
        repo: Repository,
        fetcher: WebFetcher,
        chunker: SemanticChunker,
        embedder: Embedder,
    ) -> None:
        self._repo = repo
        self._fetcher = fetcher
        self._chunker = chunker
        self._embedder = embedder

    def process(self, urls: list[str], jurisdiction: str) -> PipelineStats:
        """Fetch and store passages for every URL in *urls*.

        Each fetched page's passages replace that URL's previous passages in
        one transaction, so a page that now has no text leaves none behind.
        Pages that could not be fetched keep what was stored.
        """
        stats = PipelineStats()
        logger.info("Processing %d URLs for %s", len(urls), jurisdiction)

        for url, html in self._fetcher.fetch_many(urls):
            if html is None:
                logger.warning("Could not fetch %s; keeping stored passages", url)
                stats.pages_skipped += 1
                continue

            chunks: list[SemanticChunk] = []
            if html.strip():
                markdown = normalize_html(html)
                chunks = self._chunker.chunk(
                    markdown, document_name=url, return_token_length=True
                )
            passages = self._to_passages(chunks, url, jurisdiction) if chunks else []
            deleted, inserted = self._repo.replace_passages([url], passages)
            stats.passages_deleted += deleted
            stats.passages_written += inserted
            if not chunks:
                logger.warning("No text units in %s; removed %d stored passages", url, deleted)
                stats.pages_skipped += 1
                continue
            logger.info(
                "Stored %d passages for %s (replaced %d)", inserted, url, deleted
            )
            stats.pages_processed += 1

        return stats

    def _to_passages(
        self, chunks: list[SemanticChunk], url: str, jurisdiction: str
    ) -> list[Passage]:
        embeddings = self._embedder.embed_many([c.text for c in chunks])
        ingested_at = utcnow()
        passages: list[Passage] = []
        for chunk, embedding in zip(chunks, embeddings):
            if len(embedding) != self._embedder.dimensions:
                raise EmbeddingDimensionError(
                    expected=self._embedder.dimensions, actual=len(embedding)
                )
            passages.append(
                Passage(
                    document_id=chunk.document_id,
                    chunk_number=chunk.chunk_number,
                    number_of_chunks=chunk.number_of_chunks,
                    text=chunk.text,
                    url=url,
                    jurisdiction=jurisdiction,
                    embedding=embedding,
                    token_length=chunk.token_length or len(chunk.text),
                    document_name=chunk.document_name,
                    ingested_at=ingested_at,
                )
            )
        return passages


# ------------------------------------------------------------------
# Job-tracked service
# ------------------------------------------------------------------


class IngestionService:
    """Runs ingestion requests inside the crawl-job lifecycle.

    Args:
        tracker:  Job tracker.
        crawler:  Link discovery.
        pipeline: Page → passages orchestrator.
        uploader: Optional PDF handoff.
        executor: Executor used by submit(); required for detached runs.
    """

    def __init__(
        self,
        tracker: JobTracker,
        crawler: Crawler,
        pipeline: IngestionPipeline,
        uploader: AssetUploader | None = None,
        executor: Executor | None = None,
    ) -> None:
        self._tracker = tracker
        self._crawler = crawler
        self._pipeline = pipeline
        self._uploader = uploader
        self._executor = executor

    def run(self, request: IngestRequest) -> IngestResponse:
        """Create a job and ingest synchronously."""
        job = self._tracker.create(request.jurisdiction, request.urls, request.max_urls)
        return self._execute(job.id, request)

    def submit(self, request: IngestRequest) -> str:
        """Create a job, queue the work, and return the job id immediately."""
        if self._executor is None:
            raise RuntimeError("IngestionService.submit() needs an executor")
        job = self._tracker.create(request.jurisdiction, request.urls, request.max_urls)
        future = self._executor.submit(self._execute, job.id, request)
        future.add_done_callback(_log_detached_failure(job.id))
        return job.id

    def _execute(self, job_id: str, request: IngestRequest) -> IngestResponse:
        started = time.perf_counter()
        try:
            self._tracker.start(job_id)

            crawl = self._discover(request)
            self._tracker.update_progress(job_id, len(crawl.web_urls), len(crawl.pdf_urls))

            if not crawl.web_urls:
                self._tracker.fail(job_id, "No web URLs found")
                raise CrawlFailure(NO_WEB_PAGES)

            self._pipeline.process(crawl.web_urls, request.jurisdiction)

            if crawl.pdf_urls and self._uploader is not None:
                self._uploader.upload_many(crawl.pdf_urls, state_prefix(request.jurisdiction))

            self._tracker.complete(job_id, len(crawl.web_urls), len(crawl.pdf_urls))
        except Exception as exc:
            self._fail_if_open(job_id, exc)
            raise

        logger.info("Job %s finished in %.2fs", job_id, time.perf_counter() - started)
        return IngestResponse(
            job_id=job_id,
            input_urls=len(request.urls),
            web_urls=crawl.web_urls,
            pdf_urls=crawl.pdf_urls,
        )

    def _discover(self, request: IngestRequest) -> CrawlResult:
        if not request.discover:
            return CrawlResult(web_urls=list(request.urls))
        return self._crawler.crawl(request.urls, request.max_urls)

    def _fail_if_open(self, job_id: str, exc: Exception) -> None:
        try:
            job = self._tracker.get(job_id)
            if not job.status.is_terminal:
                self._tracker.fail(job_id, str(exc) or type(exc).__name__)
        except Exception:
            logger.exception("Could not mark job %s as failed", job_id)


def _log_detached_failure(job_id: str):
    def callback(future: Future) -> None:
        if future.cancelled():
            logger.warning("Detached job %s was cancelled", job_id)
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Detached job %s failed: %s", job_id, exc)

    return callback
