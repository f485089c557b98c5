"""Helpers shared by the lawcrawl commands: config loading, context, JSON output."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console

from lawcrawl.cli.errors import err_config
from lawcrawl.config import ConfigError, LawcrawlConfig, load_config
from lawcrawl.context import AppContext

console = Console()


def load_config_or_exit() -> LawcrawlConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def resolve_db(db: Path | None, cfg: LawcrawlConfig) -> Path:
    return db if db is not None else Path(cfg.storage.db_path)


def open_context(cfg: LawcrawlConfig, db: Path) -> AppContext:
    return AppContext.open(cfg, db_path=db)


def emit_json(payload: Any) -> None:
    """Write *payload* to stdout as indented JSON (the response body)."""
    typer.echo(json.dumps(payload, indent=2))
