"""lawcrawl purge: delete every stored passage for the given URLs.

Usage:
  lawcrawl purge --url https://a.gov/statute/1
  lawcrawl purge --url https://a.gov/x --url https://a.gov/y --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from lawcrawl.cli.common import console, load_config_or_exit, open_context, resolve_db
from lawcrawl.cli.errors import err_lawcrawl
from lawcrawl.errors import LawcrawlError


def purge_cmd(
    url: Annotated[
        list[str],
        typer.Option("--url", "-u", help="URL whose passages to delete (repeatable)."),
    ],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the lawcrawl database (default: storage.db_path)."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Delete the stored passages of one or more URLs."""
    urls = list(dict.fromkeys(u.strip() for u in url if u.strip()))
    if not urls:
        console.print("[red]Error:[/] At least one non-empty --url is required.")
        raise typer.Exit(1)

    cfg = load_config_or_exit()
    try:
        with open_context(cfg, resolve_db(db, cfg)) as ctx:
            counts = {u: len(ctx.repo.list_passages_by_url(u)) for u in urls}
            total = sum(counts.values())
            if total == 0:
                console.print("[dim]No stored passages for the given URLs.[/]")
                return

            console.print(f"\nPurge [bold]{total}[/] passage(s):")
            for u, n in counts.items():
                console.print(f"  {u}  ({n})")

            if not yes and not typer.confirm("Confirm purge?", default=False):
                console.print("[dim]Cancelled.[/]")
                return

            deleted = ctx.repo.delete_passages_by_urls(urls)
    except LawcrawlError as exc:
        console.print(err_lawcrawl(exc))
        raise typer.Exit(1) from exc

    console.print(f"[green]✓[/] Deleted {deleted} passage(s).")
