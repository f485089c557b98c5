"""lawcrawl jobs: inspect crawl jobs.

Usage:
  lawcrawl jobs list
  lawcrawl jobs list --state NY --status failed --limit 10
  lawcrawl jobs show 3f2a...
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from lawcrawl.cli.common import console, emit_json, load_config_or_exit, open_context, resolve_db
from lawcrawl.cli.errors import err_job_not_found, err_lawcrawl
from lawcrawl.db.models import JobStatus
from lawcrawl.errors import JobNotFound, LawcrawlError

jobs_app = typer.Typer(help="Inspect crawl jobs.", no_args_is_help=True)

_STATUS_STYLE = {
    JobStatus.PENDING: "dim",
    JobStatus.PROCESSING: "yellow",
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
}

DbOpt = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the lawcrawl database (default: storage.db_path)."),
]


@jobs_app.command("list")
def list_cmd(
    state: Annotated[
        str | None, typer.Option("--state", "-s", help="Only jobs for this state.")
    ] = None,
    status: Annotated[
        JobStatus | None, typer.Option("--status", help="Only jobs in this status.")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", min=1, help="Maximum jobs to show.")] = 50,
    offset: Annotated[int, typer.Option("--offset", min=0, help="Skip this many jobs.")] = 0,
    json_output: Annotated[bool, typer.Option("--json", help="Print jobs as JSON.")] = False,
    db: DbOpt = None,
) -> None:
    """List crawl jobs, newest first."""
    cfg = load_config_or_exit()
    try:
        with open_context(cfg, resolve_db(db, cfg)) as ctx:
            jobs = ctx.tracker.list(
                jurisdiction=state, status=status, limit=limit, offset=offset
            )
    except LawcrawlError as exc:
        console.print(err_lawcrawl(exc))
        raise typer.Exit(1) from exc

    if json_output:
        emit_json([job.to_dict() for job in jobs])
        return

    if not jobs:
        console.print("[dim]No crawl jobs.[/]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("State")
    table.add_column("Status")
    table.add_column("Web", justify="right")
    table.add_column("PDF", justify="right")
    table.add_column("Created")
    for job in jobs:
        style = _STATUS_STYLE.get(job.status, "")
        table.add_row(
            job.id,
            job.jurisdiction,
            f"[{style}]{job.status.value}[/]" if style else job.status.value,
            str(job.web_urls_found or 0),
            str(job.pdf_urls_found or 0),
            job.created_at or "",
        )
    console.print(table)


@jobs_app.command("show")
def show_cmd(
    job_id: Annotated[str, typer.Argument(help="Job id printed by crawl / ingest.")],
    db: DbOpt = None,
) -> None:
    """Print one crawl job as JSON."""
    cfg = load_config_or_exit()
    try:
        with open_context(cfg, resolve_db(db, cfg)) as ctx:
            job = ctx.tracker.get(job_id)
    except JobNotFound as exc:
        console.print(err_job_not_found(job_id))
        raise typer.Exit(1) from exc
    except LawcrawlError as exc:
        console.print(err_lawcrawl(exc))
        raise typer.Exit(1) from exc

    emit_json(job.to_dict())
