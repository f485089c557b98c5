"""Query engine: cache → search → relevance gate → context → LLM → cache.

Flow for ``answer(question, state)``:
  1. Return the cached answer for (question, state) if there is one.
  2. Embed the question and search the state's passages (top_k best first).
  3. If the relevance gate rejects the results, answer with a fixed
     "no data" message, empty sources, cached with the short TTL.
  4. Otherwise build the context from passages scoring >= min_score, call
     the language model, and cache the answer with the default TTL.

Cache failures never fail a query: reads fall through to a miss and writes
are skipped, both with a logged warning.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from lawcrawl.config import CacheCfg, GenerationCfg, RetrievalCfg
from lawcrawl.db.repository import Repository
from lawcrawl.errors import CacheError, InvalidInput
from lawcrawl.ingest.embeddings import Embedder
from lawcrawl.rag import llm_client
from lawcrawl.rag.assembler import build_context, build_messages, collect_sources
from lawcrawl.rag.cache import AnswerCache, cache_key
from lawcrawl.rag.relevance import are_results_relevant, high_relevance

logger = logging.getLogger(__name__)

NO_DATA_TEMPLATE = """\
I apologize, but I don't have enough relevant information in my database to answer \
your question about {state} state laws regarding "{question}". For the most accurate \
and up-to-date information, I recommend:

1. Consulting the official {state} state government website
2. Contacting the relevant {state} state department or agency
3. Consulting with a legal professional licensed in {state}

This will ensure you get accurate information specific to {state} state laws."""


def no_data_message(question: str, jurisdiction: str) -> str:
    return NO_DATA_TEMPLATE.format(state=jurisdiction, question=question)


def parse_question(payload: dict[str, Any]) -> str:
    """Validate a ``{question}`` payload and return the question text."""
    question = payload.get("question") if isinstance(payload, dict) else None
    if not isinstance(question, str) or not question.strip():
        raise InvalidInput("Question must be a non-empty string")
    return question


@dataclass
class Answer:
    content: str
    sources: list[str] = field(default_factory=list)
    cached: bool = False

    def to_response(self) -> dict[str, Any]:
        return {"answer": self.content, "sources": list(self.sources)}

    def to_cache(self) -> dict[str, Any]:
        return {"content": self.content, "sources": list(self.sources)}


class QueryEngine:
    """Answers questions from one state's stored passages.

    Args:
        repo:       Repository used for the similarity search.
        embedder:   Embeds the question (same model as ingestion).
        cache:      Answer cache backend.
        retrieval:  top_k and relevance thresholds.
        generation: Model, temperature and token limit for the answer.
        cache_ttls: default / no-data TTLs.
        complete:   LLM call; defaults to llm_client.complete.
        check_credentials: Called with the generation model just before the
            LLM call. Cached and no-data answers skip it.
    """

    def __init__(
        self,
        repo: Repository,
        embedder: Embedder,
        cache: AnswerCache,
        retrieval: RetrievalCfg | None = None,
        generation: GenerationCfg | None = None,
        cache_ttls: CacheCfg | None = None,
        complete: Callable[..., str] | None = None,
        check_credentials: Callable[[str], None] | None = None,
    ) -> None:
        self._repo = repo
        self._embedder = embedder
        self._cache = cache
        self._retrieval = retrieval or RetrievalCfg()
        self._generation = generation or GenerationCfg()
        self._ttls = cache_ttls or CacheCfg()
        self._complete = complete or llm_client.complete
        self._check_credentials = check_credentials

    def answer(self, question: str, jurisdiction: str) -> Answer:
        started = time.perf_counter()
        key = cache_key(question, jurisdiction)

        cached = self._cache_get(key)
        if cached is not None:
            logger.info("Cache hit for %s question", jurisdiction)
            return Answer(
                content=cached.get("content", ""),
                sources=list(cached.get("sources", [])),
                cached=True,
            )

        search_started = time.perf_counter()
        query_embedding = self._embedder.embed(question)
        results = self._repo.similarity_search(
            query_embedding, self._retrieval.top_k, jurisdiction
        )
        logger.info(
            "Vector search returned %d results in %.2fs",
            len(results),
            time.perf_counter() - search_started,
        )

        if not are_results_relevant(
            results,
            question,
            min_score=self._retrieval.min_score,
            min_term_ratio=self._retrieval.min_term_ratio,
        ):
            answer = Answer(content=no_data_message(question, jurisdiction), sources=[])
            self._cache_set(key, answer, self._ttls.no_data_ttl)
            return answer

        relevant = high_relevance(results, self._retrieval.min_score)
        context = build_context(relevant)
        messages = build_messages(question, jurisdiction, context)

        if self._check_credentials is not None:
            self._check_credentials(self._generation.model)
        llm_started = time.perf_counter()
        content = self._complete(
            model=self._generation.model,
            messages=messages,
            max_tokens=self._generation.max_tokens,
            temperature=self._generation.temperature,
        )
        logger.info("LLM response generated in %.2fs", time.perf_counter() - llm_started)

        answer = Answer(content=content, sources=collect_sources(relevant))
        self._cache_set(key, answer, self._ttls.default_ttl)
        logger.info("Answered in %.2fs", time.perf_counter() - started)
        return answer

    # ------------------------------------------------------------------

    def _cache_get(self, key: str) -> dict[str, Any] | None:
        try:
            return self._cache.get(key)
        except CacheError as exc:
            logger.warning("Answer cache read failed, continuing without it: %s", exc)
            return None

    def _cache_set(self, key: str, answer: Answer, ttl: int) -> None:
        try:
            self._cache.set(key, answer.to_cache(), ttl)
        except CacheError as exc:
            logger.warning("Failed to cache answer: %s", exc)
