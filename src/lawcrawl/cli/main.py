"""lawcrawl CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from lawcrawl.cli.ask import ask_cmd
from lawcrawl.cli.crawl import crawl_cmd, ingest_cmd
from lawcrawl.cli.init import init_cmd
from lawcrawl.cli.jobs import jobs_app
from lawcrawl.cli.purge import purge_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("lawcrawl")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"lawcrawl {_installed_version()}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


app = typer.Typer(
    name="lawcrawl",
    help=(
        "lawcrawl: crawl state legal websites and answer questions from them.\n\n"
        "  lawcrawl crawl   Discover and ingest pages for one state.\n"
        "  lawcrawl ask     Answer a question from that state's passages."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log pipeline progress to stderr."),
    ] = False,
) -> None:
    """lawcrawl: legal document crawler and question answering."""
    _configure_logging(verbose)


app.command("init")(init_cmd)
app.command("crawl")(crawl_cmd)
app.command("ingest")(ingest_cmd)
app.command("ask")(ask_cmd)
app.command("purge")(purge_cmd)
app.add_typer(jobs_app, name="jobs")


@app.command("version")
def version_cmd() -> None:
    """Show the installed lawcrawl version."""
    typer.echo(f"lawcrawl {_installed_version()}")


if __name__ == "__main__":
    app()
