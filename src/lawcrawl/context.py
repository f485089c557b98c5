"""Application context: every long-lived collaborator, built once per process.

Usage::

    with AppContext.open(config) as ctx:
        ctx.query_engine.answer("...", "NY")

Entering opens the database, initialises the schema and wires the
components; leaving waits for detached jobs, then closes the connection.
"""

from __future__ import annotations

import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from lawcrawl.config import LawcrawlConfig
from lawcrawl.db.connection import Database
from lawcrawl.db.repository import Repository
from lawcrawl.db.schema import initialize
from lawcrawl.ingest.chunker import SemanticChunker
from lawcrawl.ingest.crawler import Crawler
from lawcrawl.ingest.embeddings import Embedder, EmbeddingClient
from lawcrawl.ingest.jobs import JobTracker
from lawcrawl.ingest.pipeline import IngestionPipeline, IngestionService
from lawcrawl.ingest.uploader import AssetUploader, LocalAssetUploader
from lawcrawl.ingest.web import WebFetcher
from lawcrawl.rag import llm_client
from lawcrawl.rag.cache import AnswerCache, build_cache
from lawcrawl.rag.engine import QueryEngine

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    config: LawcrawlConfig
    conn: sqlite3.Connection
    repo: Repository
    embedder: Embedder
    cache: AnswerCache
    tracker: JobTracker
    fetcher: WebFetcher
    pipeline: IngestionPipeline
    ingestion: IngestionService
    query_engine: QueryEngine
    executor: ThreadPoolExecutor = field(repr=False)

    @classmethod
    def build(
        cls,
        config: LawcrawlConfig,
        conn: sqlite3.Connection,
        *,
        embedder: Embedder | None = None,
        fetcher: WebFetcher | None = None,
        uploader: AssetUploader | None = None,
        cache: AnswerCache | None = None,
    ) -> AppContext:
        """Wire components around an open, initialised connection."""
        repo = Repository(conn)
        embedder = embedder or EmbeddingClient(
            model=config.embedding.model,
            dimensions=config.embedding.dimensions,
            max_workers=config.embedding.max_workers,
        )
        fetcher = fetcher or WebFetcher(
            timeout=config.crawl.timeout,
            max_retries=config.crawl.max_retries,
            max_workers=config.crawl.max_workers,
        )
        uploader = uploader or LocalAssetUploader(
            config.crawl.asset_dir, timeout=config.crawl.timeout
        )
        cache = cache or build_cache(config.cache, repo)

        chunker = SemanticChunker(
            embedder,
            window_size=config.chunker.window_size,
            similarity_threshold=config.chunker.similarity_threshold,
            max_tokens=config.chunker.max_tokens,
        )
        tracker = JobTracker(repo)
        pipeline = IngestionPipeline(repo, fetcher, chunker, embedder)
        crawler = Crawler(fetcher, max_workers=config.crawl.max_workers)
        # One worker: detached jobs share the single SQLite connection.
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="lawcrawl-job")
        ingestion = IngestionService(tracker, crawler, pipeline, uploader, executor)
        query_engine = QueryEngine(
            repo,
            embedder,
            cache,
            retrieval=config.retrieval,
            generation=config.generation,
            cache_ttls=config.cache,
            check_credentials=llm_client.validate_api_key,
        )
        return cls(
            config=config,
            conn=conn,
            repo=repo,
            embedder=embedder,
            cache=cache,
            tracker=tracker,
            fetcher=fetcher,
            pipeline=pipeline,
            ingestion=ingestion,
            query_engine=query_engine,
            executor=executor,
        )

    @classmethod
    def open(cls, config: LawcrawlConfig, db_path: Path | str | None = None, **overrides) -> AppContext:
        """Open the database, initialise the schema, and build the context."""
        path = Path(db_path or config.storage.db_path)
        conn = Database(path).connect()
        try:
            initialize(conn, config.embedding.dimensions)
        except Exception:
            conn.close()
            raise
        logger.debug("Opened database %s", path)
        return cls.build(config, conn, **overrides)

    def close(self) -> None:
        self.executor.shutdown(wait=True)
        self.conn.close()

    def __enter__(self) -> AppContext:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
