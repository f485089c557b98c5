"""CLI fixtures: config and context wired to fakes instead of the network."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from lawcrawl.config import LawcrawlConfig
from lawcrawl.context import AppContext
from lawcrawl.ingest.web import FetchedPage

from fakes import TEST_DIMENSIONS, KeywordEmbedder

SITE = {
    "https://law.gov/": '<a href="/tax">Tax</a> <a href="/code.pdf">Code</a>',
    "https://law.gov/tax": "<h1>Tax</h1><p>Tax returns are due in April for every resident.</p>",
}


class FakeSite:
    """Fetcher serving SITE; /code.pdf is a PDF, robots.txt is missing."""

    def fetch_page(self, url: str) -> FetchedPage:
        if url.endswith(".pdf"):
            return FetchedPage(url=url, content_type="application/pdf")
        if url not in SITE:
            raise OSError(f"404 {url}")
        return FetchedPage(url=url, content_type="text/html", body=SITE[url].encode())

    def fetch_many(self, urls: list[str]) -> list[tuple[str, str | None]]:
        return [(u, SITE.get(u)) for u in urls]


@pytest.fixture
def cli_config(tmp_path: Path, monkeypatch) -> LawcrawlConfig:
    cfg = LawcrawlConfig()
    cfg.embedding.dimensions = TEST_DIMENSIONS
    cfg.storage.db_path = str(tmp_path / ".lawcrawl.db")
    monkeypatch.setattr("lawcrawl.cli.common.load_config", lambda: cfg)
    return cfg


@pytest.fixture
def uploader() -> MagicMock:
    return MagicMock()


@pytest.fixture
def fake_context(cli_config, uploader, monkeypatch):
    """Route every command's AppContext.open through fakes."""

    class _Context:
        @staticmethod
        def open(config, db_path=None):
            return AppContext.open(
                config,
                db_path=db_path,
                embedder=KeywordEmbedder(),
                fetcher=FakeSite(),
                uploader=uploader,
            )

    monkeypatch.setattr("lawcrawl.cli.common.AppContext", _Context)
    return cli_config
