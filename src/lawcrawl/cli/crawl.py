"""lawcrawl crawl / ingest: discover and ingest legal web pages for one state.

``crawl`` runs link discovery from the start URLs (same host, bounded by
--max-urls) and then ingests every web page it found; PDFs are copied to
the asset directory. ``ingest`` skips discovery and ingests the given URLs.

Usage:
  lawcrawl crawl --state NY --url https://www.nysenate.gov/legislation/laws
  lawcrawl crawl --state NY --url https://a.gov/x --url https://a.gov/y --max-urls 50
  lawcrawl crawl --state NY --url https://a.gov/x --detach
  lawcrawl ingest --state NY --url https://a.gov/statute/1

Both print the response body as JSON. With --detach the job id is printed
at once and the command returns when the background job has finished; use
``lawcrawl jobs show <id>`` from another shell to follow it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from lawcrawl.cli.common import console, emit_json, load_config_or_exit, open_context, resolve_db
from lawcrawl.cli.errors import err_lawcrawl, err_no_web_urls
from lawcrawl.errors import CrawlFailure, LawcrawlError
from lawcrawl.ingest.pipeline import NO_WEB_PAGES, IngestRequest

StateOpt = Annotated[str, typer.Option("--state", "-s", help="State the documents belong to.")]
UrlOpt = Annotated[
    list[str],
    typer.Option("--url", "-u", help="Start URL (repeatable)."),
]
MaxUrlsOpt = Annotated[
    int | None,
    typer.Option("--max-urls", min=1, help="Upper bound on URLs discovered (default: crawl.max_urls)."),
]
DetachOpt = Annotated[
    bool,
    typer.Option("--detach", help="Run the job in the background and print its id first."),
]
DbOpt = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the lawcrawl database (default: storage.db_path)."),
]


def crawl_cmd(
    state: StateOpt,
    url: UrlOpt,
    max_urls: MaxUrlsOpt = None,
    detach: DetachOpt = False,
    db: DbOpt = None,
) -> None:
    """Discover pages from the start URLs, then ingest them."""
    _run(state, url, max_urls, detach, db, discover=True)


def ingest_cmd(
    state: StateOpt,
    url: UrlOpt,
    detach: DetachOpt = False,
    db: DbOpt = None,
) -> None:
    """Ingest exactly the given URLs, without link discovery."""
    _run(state, url, len(url) or 1, detach, db, discover=False)


def _run(
    state: str,
    urls: list[str],
    max_urls: int | None,
    detach: bool,
    db: Path | None,
    *,
    discover: bool,
) -> None:
    cfg = load_config_or_exit()
    db_path = resolve_db(db, cfg)

    try:
        request = IngestRequest.parse(
            {"urls": urls, "maxUrls": max_urls or cfg.crawl.max_urls}, state, discover=discover
        )
    except LawcrawlError as exc:
        console.print(err_lawcrawl(exc))
        raise typer.Exit(1) from exc

    try:
        with open_context(cfg, db_path) as ctx:
            if detach:
                job_id = ctx.ingestion.submit(request)
                emit_json({"jobId": job_id})
                return
            response = ctx.ingestion.run(request)
    except CrawlFailure as exc:
        if exc.message == NO_WEB_PAGES:
            console.print(err_no_web_urls(request.urls))
        else:
            console.print(err_lawcrawl(exc))
        raise typer.Exit(1) from exc
    except LawcrawlError as exc:
        console.print(err_lawcrawl(exc))
        raise typer.Exit(1) from exc

    emit_json(response.to_dict())
