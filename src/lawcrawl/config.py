"""lawcrawl configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (LAWCRAWL_*, DEFAULT_CACHE_TTL, NO_DATA_CACHE_TTL)
  3. Per-project lawcrawl.yaml  (current directory)
  4. Global ~/.lawcrawl/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".lawcrawl"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "lawcrawl.yaml"

# Key names that look like credentials. Does NOT match max_tokens, redis_url.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["storage", "embedding", "generation", "chunker", "retrieval", "cache", "crawl"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StorageCfg:
    """Where the SQLite database lives (lawcrawl.yaml: storage:)."""

    db_path: str = ".lawcrawl.db"


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (lawcrawl.yaml: embedding:)."""

    model: str = "huggingface/sentence-transformers/all-MiniLM-L6-v2"
    dimensions: int = 384
    max_workers: int = 8


@dataclass
class GenerationCfg:
    """LLM answer generation (lawcrawl.yaml: generation:)."""

    model: str = "openai/gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 1024


@dataclass
class ChunkerCfg:
    """Semantic chunker parameters (lawcrawl.yaml: chunker:)."""

    window_size: int = 2
    similarity_threshold: float = 0.75
    max_tokens: int = 384


@dataclass
class RetrievalCfg:
    """Search + relevance gate (lawcrawl.yaml: retrieval:)."""

    top_k: int = 8
    min_score: float = 0.7
    min_term_ratio: float = 0.5


@dataclass
class CacheCfg:
    """Answer cache (lawcrawl.yaml: cache:).

    Attributes:
        redis_url: When set, answers are cached in Redis; otherwise in the
            ``answer_cache`` table of the SQLite database.
        default_ttl: Seconds a data-found answer is kept.
        no_data_ttl: Seconds a "no relevant data" answer is kept.
    """

    redis_url: str | None = None
    default_ttl: int = 300
    no_data_ttl: int = 60


@dataclass
class CrawlCfg:
    """Crawler limits (lawcrawl.yaml: crawl:)."""

    max_urls: int = 1000
    max_retries: int = 3
    timeout: int = 30
    max_workers: int = 8
    asset_dir: str = "downloaded_pdfs"


@dataclass
class LawcrawlConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    storage: StorageCfg = field(default_factory=StorageCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    chunker: ChunkerCfg = field(default_factory=ChunkerCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    cache: CacheCfg = field(default_factory=CacheCfg)
    crawl: CrawlCfg = field(default_factory=CrawlCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}'; ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: LawcrawlConfig) -> None:
    """Raise ConfigError for values the pipeline cannot work with."""
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if cfg.chunker.window_size < 0:
        raise ConfigError(f"chunker.window_size must be >= 0, got {cfg.chunker.window_size}")
    if not -1.0 <= cfg.chunker.similarity_threshold <= 1.0:
        raise ConfigError(
            "chunker.similarity_threshold must be in [-1.0, 1.0], "
            f"got {cfg.chunker.similarity_threshold}"
        )
    if cfg.chunker.max_tokens < 1:
        raise ConfigError(f"chunker.max_tokens must be >= 1, got {cfg.chunker.max_tokens}")
    if cfg.retrieval.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {cfg.retrieval.top_k}")
    if cfg.cache.default_ttl < 1 or cfg.cache.no_data_ttl < 1:
        raise ConfigError("cache TTLs must be positive numbers of seconds")
    if cfg.crawl.max_urls < 1:
        raise ConfigError(f"crawl.max_urls must be >= 1, got {cfg.crawl.max_urls}")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> LawcrawlConfig:
    """Build a *LawcrawlConfig* from a merged raw YAML dict."""
    cfg = LawcrawlConfig()

    try:
        if "storage" in data:
            s = data["storage"]
            cfg.storage = StorageCfg(db_path=str(s.get("db_path", cfg.storage.db_path)))

        if "embedding" in data:
            e = data["embedding"]
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", cfg.embedding.model)),
                dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
                max_workers=int(e.get("max_workers", cfg.embedding.max_workers)),
            )

        if "generation" in data:
            g = data["generation"]
            cfg.generation = GenerationCfg(
                model=str(g.get("model", cfg.generation.model)),
                temperature=float(g.get("temperature", cfg.generation.temperature)),
                max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            )

        if "chunker" in data:
            c = data["chunker"]
            cfg.chunker = ChunkerCfg(
                window_size=int(c.get("window_size", cfg.chunker.window_size)),
                similarity_threshold=float(
                    c.get("similarity_threshold", cfg.chunker.similarity_threshold)
                ),
                max_tokens=int(c.get("max_tokens", cfg.chunker.max_tokens)),
            )

        if "retrieval" in data:
            r = data["retrieval"]
            cfg.retrieval = RetrievalCfg(
                top_k=int(r.get("top_k", cfg.retrieval.top_k)),
                min_score=float(r.get("min_score", cfg.retrieval.min_score)),
                min_term_ratio=float(r.get("min_term_ratio", cfg.retrieval.min_term_ratio)),
            )

        if "cache" in data:
            ca = data["cache"]
            cfg.cache = CacheCfg(
                redis_url=ca.get("redis_url") or cfg.cache.redis_url,
                default_ttl=int(ca.get("default_ttl", cfg.cache.default_ttl)),
                no_data_ttl=int(ca.get("no_data_ttl", cfg.cache.no_data_ttl)),
            )

        if "crawl" in data:
            cr = data["crawl"]
            cfg.crawl = CrawlCfg(
                max_urls=int(cr.get("max_urls", cfg.crawl.max_urls)),
                max_retries=int(cr.get("max_retries", cfg.crawl.max_retries)),
                timeout=int(cr.get("timeout", cfg.crawl.timeout)),
                max_workers=int(cr.get("max_workers", cfg.crawl.max_workers)),
                asset_dir=str(cr.get("asset_dir", cfg.crawl.asset_dir)),
            )
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _env_int(name: str, current: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return current
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"Environment variable {name} must be an integer, got '{raw}'") from exc


def _apply_env_overrides(cfg: LawcrawlConfig) -> LawcrawlConfig:
    """Apply environment variable overrides (layer 2)."""
    if model := os.environ.get("LAWCRAWL_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("LAWCRAWL_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if url := os.environ.get("LAWCRAWL_REDIS_URL"):
        cfg.cache.redis_url = url
    if db_path := os.environ.get("LAWCRAWL_DB"):
        cfg.storage.db_path = db_path
    cfg.cache.default_ttl = _env_int("DEFAULT_CACHE_TTL", cfg.cache.default_ttl)
    cfg.cache.no_data_ttl = _env_int("NO_DATA_CACHE_TTL", cfg.cache.no_data_ttl)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> LawcrawlConfig:
    """Load and return a merged *LawcrawlConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *lawcrawl.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged and validated *LawcrawlConfig*.

    Raises:
        ConfigError: If global config contains API-key-like fields, or a value
            is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.lawcrawl/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# lawcrawl global configuration: model defaults only.\n"
            "# NEVER store API keys here; use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "#   export HUGGINGFACE_API_KEY=hf_...\n"
            "\n"
            "embedding:\n"
            "  model: huggingface/sentence-transformers/all-MiniLM-L6-v2\n"
            "  dimensions: 384\n"
            "\n"
            "generation:\n"
            "  model: openai/gpt-4o-mini\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
