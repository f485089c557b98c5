"""Answer cache keyed by (question, state) with per-entry TTLs.

Two backends share the AnswerCache protocol:

- SqliteAnswerCache: the ``answer_cache`` table of the project database.
  Expired rows read as misses and are dropped on the next write.
- RedisAnswerCache: ``SETEX`` on a Redis server, for deployments that share
  one cache between processes.

Backend failures raise CacheError. Whether that is fatal is the caller's call;
the query engine treats it as a miss or a skipped write.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import time
from collections.abc import Callable
from typing import Any, Protocol

import redis

from lawcrawl.config import CacheCfg
from lawcrawl.db.repository import Repository
from lawcrawl.errors import CacheError

logger = logging.getLogger(__name__)


def cache_key(question: str, jurisdiction: str) -> str:
    """``question:<md5(question:state)>:response`` over trimmed, lower-cased input."""
    digest = hashlib.md5(
        f"{question.lower().strip()}:{jurisdiction.lower().strip()}".encode("utf-8")
    ).hexdigest()
    return f"question:{digest}:response"


class AnswerCache(Protocol):
    def get(self, key: str) -> dict[str, Any] | None: ...

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None: ...


class SqliteAnswerCache:
    """Answer cache stored in the project's SQLite database."""

    def __init__(self, repo: Repository, clock: Callable[[], float] = time.time) -> None:
        self._repo = repo
        self._clock = clock

    def get(self, key: str) -> dict[str, Any] | None:
        try:
            raw = self._repo.get_cache_value(key, self._clock())
        except sqlite3.Error as exc:
            raise CacheError(f"Cache read failed: {exc}") from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise CacheError(f"Corrupt cache entry for {key}: {exc}") from exc

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        now = self._clock()
        try:
            self._repo.delete_expired_cache(now)
            self._repo.set_cache_value(key, json.dumps(value), now + ttl_seconds)
        except sqlite3.Error as exc:
            raise CacheError(f"Cache write failed: {exc}") from exc


class RedisAnswerCache:
    """Answer cache on a Redis server."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisAnswerCache:
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> dict[str, Any] | None:
        try:
            raw = self._client.get(key)
        except redis.RedisError as exc:
            raise CacheError(f"Redis read failed: {exc}") from exc
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise CacheError(f"Corrupt cache entry for {key}: {exc}") from exc

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        try:
            self._client.setex(key, ttl_seconds, json.dumps(value))
        except redis.RedisError as exc:
            raise CacheError(f"Redis write failed: {exc}") from exc


def build_cache(config: CacheCfg, repo: Repository) -> AnswerCache:
    """Redis when ``cache.redis_url`` is set, otherwise the SQLite table."""
    if config.redis_url:
        logger.debug("Using Redis answer cache")
        return RedisAnswerCache.from_url(config.redis_url)
    return SqliteAnswerCache(repo)
