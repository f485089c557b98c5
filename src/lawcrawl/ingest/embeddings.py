"""Embedding client: text → fixed-width, L2-normalised vector via LiteLLM.

Used by both the semantic chunker (window embeddings) and the query engine
(question embedding). Every vector is checked against the configured width;
a mismatch raises EmbeddingDimensionError and is never truncated or padded.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Protocol

import litellm

from lawcrawl.errors import EmbeddingDimensionError, UpstreamModelError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "huggingface/sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_DIMENSIONS = 384


class Embedder(Protocol):
    """Anything that turns text into a fixed-width vector."""

    dimensions: int

    def embed(self, text: str) -> list[float]: ...

    def embed_many(self, texts: list[str]) -> list[list[float]]: ...


def l2_normalize(vector: list[float]) -> list[float]:
    """Scale *vector* to unit length. A zero vector is returned unchanged."""
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return list(vector)
    return [v / norm for v in vector]


class EmbeddingClient:
    """LiteLLM-backed embedder.

    Args:
        model:       LiteLLM embedding model string (provider/model format).
        dimensions:  Expected vector width.
        max_workers: Thread pool size for embed_many().
        num_retries: Passed through to litellm.embedding().
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        max_workers: int = 8,
        num_retries: int = 0,
    ) -> None:
        self.model = model
        self.dimensions = dimensions
        self.max_workers = max(1, max_workers)
        self.num_retries = num_retries

    def embed(self, text: str) -> list[float]:
        """Embed one text. Raises EmbeddingDimensionError / UpstreamModelError."""
        try:
            response = litellm.embedding(
                model=self.model,
                input=[text],
                num_retries=self.num_retries,
            )
        except Exception as exc:
            raise UpstreamModelError(f"Embedding call failed ({self.model}): {exc}") from exc

        vector = [float(v) for v in response.data[0]["embedding"]]
        if len(vector) != self.dimensions:
            raise EmbeddingDimensionError(expected=self.dimensions, actual=len(vector))
        return l2_normalize(vector)

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* concurrently; results are returned in input order."""
        if not texts:
            return []
        if len(texts) == 1:
            return [self.embed(texts[0])]

        results: list[list[float] | None] = [None] * len(texts)
        workers = min(self.max_workers, len(texts))
        logger.debug("Embedding %d texts with %d workers", len(texts), workers)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_map = {executor.submit(self.embed, t): i for i, t in enumerate(texts)}
            for future in as_completed(future_map):
                results[future_map[future]] = future.result()
        return [r for r in results if r is not None]
