"""Tests for the lawcrawl config loader."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest
import yaml

from lawcrawl.config import ConfigError, LawcrawlConfig, ensure_global_config, load_config

_ENV_VARS = (
    "LAWCRAWL_GENERATION_MODEL",
    "LAWCRAWL_EMBEDDING_MODEL",
    "LAWCRAWL_REDIS_URL",
    "LAWCRAWL_DB",
    "DEFAULT_CACHE_TTL",
    "NO_DATA_CACHE_TTL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


def _load(tmp_path: Path) -> LawcrawlConfig:
    return load_config(tmp_path, global_config_path=tmp_path / "global.yaml")


# ---------------------------------------------------------------------------
# Defaults and layering
# ---------------------------------------------------------------------------


def test_defaults_without_files(tmp_path: Path) -> None:
    cfg = _load(tmp_path)
    assert cfg.storage.db_path == ".lawcrawl.db"
    assert cfg.embedding.dimensions == 384
    assert cfg.generation.model == "openai/gpt-4o-mini"
    assert cfg.generation.max_tokens == 1024
    assert cfg.generation.temperature == 0.7
    assert (cfg.chunker.window_size, cfg.chunker.similarity_threshold, cfg.chunker.max_tokens) == (
        2,
        0.75,
        384,
    )
    assert (cfg.retrieval.top_k, cfg.retrieval.min_score, cfg.retrieval.min_term_ratio) == (
        8,
        0.7,
        0.5,
    )
    assert (cfg.cache.default_ttl, cfg.cache.no_data_ttl) == (300, 60)
    assert cfg.cache.redis_url is None
    assert cfg.crawl.max_urls == 1000


def test_project_overrides_global(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "global.yaml", {"generation": {"model": "anthropic/claude-3-haiku"}})
    _write_yaml(
        tmp_path / "lawcrawl.yaml",
        {"generation": {"temperature": 0.2}, "retrieval": {"top_k": 4}},
    )
    cfg = _load(tmp_path)
    assert cfg.generation.model == "anthropic/claude-3-haiku"
    assert cfg.generation.temperature == 0.2
    assert cfg.retrieval.top_k == 4


def test_env_overrides_files(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "lawcrawl.yaml", {"cache": {"default_ttl": 100}})
    monkeypatch.setenv("DEFAULT_CACHE_TTL", "900")
    monkeypatch.setenv("NO_DATA_CACHE_TTL", "30")
    monkeypatch.setenv("LAWCRAWL_REDIS_URL", "redis://cache:6379/0")
    monkeypatch.setenv("LAWCRAWL_GENERATION_MODEL", "openai/gpt-4o")
    monkeypatch.setenv("LAWCRAWL_DB", "/data/law.db")
    cfg = _load(tmp_path)
    assert cfg.cache.default_ttl == 900
    assert cfg.cache.no_data_ttl == 30
    assert cfg.cache.redis_url == "redis://cache:6379/0"
    assert cfg.generation.model == "openai/gpt-4o"
    assert cfg.storage.db_path == "/data/law.db"


def test_non_integer_ttl_env_rejected(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("DEFAULT_CACHE_TTL", "five minutes")
    with pytest.raises(ConfigError, match="DEFAULT_CACHE_TTL"):
        _load(tmp_path)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_api_key_in_global_config_rejected(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "global.yaml", {"generation": {"api_key": "sk-123"}})
    with pytest.raises(ConfigError, match="forbidden key 'generation.api_key'"):
        _load(tmp_path)


def test_unknown_section_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "lawcrawl.yaml", {"bogus": {"x": 1}})
    with pytest.warns(UserWarning, match="bogus"):
        _load(tmp_path)


@pytest.mark.parametrize("data,match", [
    ({"embedding": {"dimensions": 0}}, "embedding.dimensions"),
    ({"chunker": {"window_size": -1}}, "window_size"),
    ({"chunker": {"similarity_threshold": 1.5}}, "similarity_threshold"),
    ({"retrieval": {"top_k": 0}}, "top_k"),
    ({"cache": {"no_data_ttl": 0}}, "TTL"),
    ({"crawl": {"max_urls": 0}}, "max_urls"),
    ({"retrieval": {"top_k": "many"}}, "Invalid config value"),
])
def test_invalid_values_rejected(tmp_path: Path, data: dict, match: str) -> None:
    _write_yaml(tmp_path / "lawcrawl.yaml", data)
    with pytest.raises(ConfigError, match=match):
        _load(tmp_path)


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_private_file(tmp_path: Path) -> None:
    target = tmp_path / "home" / ".lawcrawl" / "config.yaml"
    path = ensure_global_config(target)
    assert path == target
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    data = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert data["embedding"]["dimensions"] == 384


def test_ensure_global_config_leaves_existing_file(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("generation:\n  model: ollama/llama3\n", encoding="utf-8")
    ensure_global_config(target)
    assert "ollama/llama3" in target.read_text(encoding="utf-8")


def test_generated_global_config_loads_cleanly(tmp_path: Path) -> None:
    target = tmp_path / "global.yaml"
    ensure_global_config(target)
    cfg = _load(tmp_path)
    assert cfg.embedding.model == "huggingface/sentence-transformers/all-MiniLM-L6-v2"
