"""Domain models for the lawcrawl database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class CrawlJob:
    id: str
    jurisdiction: str
    urls: list[str] = field(default_factory=list)
    max_urls: int = 1000
    status: JobStatus = JobStatus.PENDING
    web_urls_found: int | None = None
    pdf_urls_found: int | None = None
    error_message: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    duration_seconds: float | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "state": self.jurisdiction,
            "urls": list(self.urls),
            "max_urls": self.max_urls,
            "status": self.status.value,
            "web_urls_found": self.web_urls_found,
            "pdf_urls_found": self.pdf_urls_found,
            "error_message": self.error_message,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "duration_seconds": self.duration_seconds,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class Passage:
    document_id: str
    chunk_number: int
    text: str
    url: str
    jurisdiction: str
    embedding: list[float] = field(default_factory=list)
    number_of_chunks: int = 1
    token_length: int = 0
    document_name: str = ""
    ingested_at: str | None = None
    rowid: int | None = None  # set after insert; None for unsaved passages

    @property
    def metadata(self) -> dict:
        return {
            "url": self.url,
            "document_id": self.document_id,
            "document_name": self.document_name,
            "number_of_chunks": self.number_of_chunks,
            "chunk_number": self.chunk_number,
            "token_length": self.token_length,
            "timestamp": self.ingested_at,
            "state": self.jurisdiction,
        }

    def metadata_json(self) -> str:
        return json.dumps(self.metadata)
