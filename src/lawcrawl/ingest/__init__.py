"""lawcrawl ingest pipeline: crawler, normaliser, semantic chunker, job tracker."""

from lawcrawl.ingest.chunker import SemanticChunk, SemanticChunker
from lawcrawl.ingest.crawler import Crawler, CrawlResult
from lawcrawl.ingest.embeddings import EmbeddingClient
from lawcrawl.ingest.jobs import JobTracker
from lawcrawl.ingest.normalizer import normalize_html
from lawcrawl.ingest.pipeline import IngestionPipeline, IngestionService, IngestRequest
from lawcrawl.ingest.splitter import split_units

__all__ = [
    "Crawler",
    "CrawlResult",
    "EmbeddingClient",
    "IngestRequest",
    "IngestionPipeline",
    "IngestionService",
    "JobTracker",
    "SemanticChunk",
    "SemanticChunker",
    "normalize_html",
    "split_units",
]
