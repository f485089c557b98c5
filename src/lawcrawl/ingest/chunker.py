"""Semantic chunker: windowed sentence-similarity segmentation.

Pipeline:
  1. Split text into atomic units (see lawcrawl.ingest.splitter).
  2. For each unit i, build a window of units [i-w .. i+w] joined by spaces.
  3. Embed every window (fanned out by the embedder, re-ordered by index).
  4. Walk the units in order; start a new chunk when the cosine similarity
     between window i-1 and window i drops below the threshold, or when
     appending unit i would push the chunk past max_tokens characters.
  5. Backfill number_of_chunks once every chunk is known.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field

from lawcrawl.ingest.embeddings import Embedder
from lawcrawl.ingest.splitter import split_units

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_NAME = "Unnamed Document"


@dataclass
class SemanticChunk:
    document_id: str
    chunk_number: int
    text: str
    units: list[str] = field(default_factory=list)
    document_name: str = DEFAULT_DOCUMENT_NAME
    number_of_chunks: int = 0
    embedding: list[float] | None = None
    token_length: int | None = None  # character count, used as a token proxy


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """dot(a, b) / (|a| |b|); 0.0 when either vector has zero magnitude."""
    if len(a) != len(b):
        raise ValueError(f"Vector length mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    mag_a = math.sqrt(sum(x * x for x in a))
    mag_b = math.sqrt(sum(y * y for y in b))
    if mag_a == 0 or mag_b == 0:
        return 0.0
    return dot / (mag_a * mag_b)


def build_windows(units: list[str], window_size: int) -> list[str]:
    """Window text anchored on each unit, clipped to the sequence bounds."""
    n = len(units)
    return [
        " ".join(units[max(0, i - window_size): min(n, i + window_size + 1)])
        for i in range(n)
    ]


class SemanticChunker:
    """Group atomic units into topic-coherent chunks.

    Args:
        embedder:             Embedding client (must provide embed_many()).
        window_size:          Units on each side of the anchor in a window.
        similarity_threshold: Adjacent-window similarity below this cuts a chunk.
        max_tokens:           Character limit per chunk (token proxy).
    """

    def __init__(
        self,
        embedder: Embedder,
        window_size: int = 2,
        similarity_threshold: float = 0.75,
        max_tokens: int = 384,
    ) -> None:
        if window_size < 0:
            raise ValueError(f"window_size must be >= 0, got {window_size}")
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {max_tokens}")
        self._embedder = embedder
        self.window_size = window_size
        self.similarity_threshold = similarity_threshold
        self.max_tokens = max_tokens

    def chunk(
        self,
        text: str,
        document_name: str | None = None,
        *,
        return_embedding: bool = False,
        return_token_length: bool = False,
    ) -> list[SemanticChunk]:
        """Chunk *text*. Returns [] for text with no units.

        Every chunk of one call shares a fresh document_id. The optional
        ``embedding`` (first unit's window embedding) and ``token_length``
        fields are filled only when the matching flag is set.
        """
        units = split_units(text)
        if not units:
            return []

        windows = build_windows(units, self.window_size)
        embeddings = self._embedder.embed_many(windows)

        document_id = uuid.uuid4().hex
        name = document_name or DEFAULT_DOCUMENT_NAME
        chunks: list[SemanticChunk] = []

        def flush(group: list[str], first_embedding: list[float]) -> None:
            chunk_text = " ".join(group)
            chunks.append(
                SemanticChunk(
                    document_id=document_id,
                    chunk_number=len(chunks) + 1,
                    text=chunk_text,
                    units=list(group),
                    document_name=name,
                    embedding=first_embedding if return_embedding else None,
                    token_length=len(chunk_text) if return_token_length else None,
                )
            )

        current = [units[0]]
        current_embedding = embeddings[0]
        for i in range(1, len(units)):
            similarity = cosine_similarity(embeddings[i - 1], embeddings[i])
            current_len = len(" ".join(current))
            if (
                similarity < self.similarity_threshold
                or current_len + len(units[i]) > self.max_tokens
            ):
                flush(current, current_embedding)
                current = []
                current_embedding = embeddings[i]
            current.append(units[i])
        flush(current, current_embedding)

        for c in chunks:
            c.number_of_chunks = len(chunks)

        logger.debug(
            "Chunked %d units into %d chunks (document %s)", len(units), len(chunks), name
        )
        return chunks
