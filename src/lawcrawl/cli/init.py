"""lawcrawl init: create a project directory.

Creates:
  .lawcrawl.db              empty database with schema and vector table
  lawcrawl.yaml             project config with the defaults spelled out
  .gitignore                ignores .lawcrawl.db and the PDF asset directory
  ~/.lawcrawl/config.yaml   global model config (created once, mode 0o600)

Existing files are left alone, so running init twice is harmless.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from lawcrawl.cli.common import console
from lawcrawl.config import ensure_global_config
from lawcrawl.db.connection import Database
from lawcrawl.db.schema import DEFAULT_DIMENSIONS, initialize

_DEFAULT_PROJECT_DIR = Path(".")

_PROJECT_YAML = """\
# lawcrawl project configuration. API keys belong in environment variables.

storage:
  db_path: .lawcrawl.db

embedding:
  model: huggingface/sentence-transformers/all-MiniLM-L6-v2
  dimensions: {dimensions}

generation:
  model: openai/gpt-4o-mini
  temperature: 0.7
  max_tokens: 1024

chunker:
  window_size: 2
  similarity_threshold: 0.75
  max_tokens: 384

retrieval:
  top_k: 8
  min_score: 0.7
  min_term_ratio: 0.5

cache:
  # redis_url: redis://localhost:6379/0
  default_ttl: 300
  no_data_ttl: 60

crawl:
  max_urls: 1000
  max_retries: 3
  timeout: 30
  max_workers: 8
  asset_dir: downloaded_pdfs
"""

_GITIGNORE_ENTRIES = [".lawcrawl.db", ".lawcrawl.db-wal", ".lawcrawl.db-shm", "downloaded_pdfs/"]


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = _DEFAULT_PROJECT_DIR,
    global_config: Annotated[
        Path | None,
        typer.Option("--global-config", hidden=True, help="Override the global config path."),
    ] = None,
) -> None:
    """Initialize a lawcrawl project: database, config and .gitignore."""
    project_dir = project_dir.resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    console.print(f"\n[bold]Initializing lawcrawl in {project_dir} …[/]\n")

    _create_database(project_dir)
    _create_project_yaml(project_dir)
    _update_gitignore(project_dir)

    cfg_path = ensure_global_config(global_config)
    console.print(f"  [green]✓[/] {cfg_path} (global config)")

    console.print("\n[bold green]✓ Project initialized.[/]")
    console.print("\nNext steps:")
    console.print("  1. lawcrawl crawl --state NY --url <start-url>   (build the passage store)")
    console.print("  2. lawcrawl jobs list                            (follow crawl jobs)")
    console.print("  3. lawcrawl ask --state NY \"<question>\"          (ask a question)")


def _create_database(project_dir: Path) -> None:
    db_path = project_dir / ".lawcrawl.db"
    existed = db_path.exists()
    with Database(db_path) as conn:
        initialize(conn, DEFAULT_DIMENSIONS)
    label = "exists, schema up to date" if existed else "created"
    console.print(f"  [green]✓[/] .lawcrawl.db ({label})")


def _create_project_yaml(project_dir: Path) -> None:
    target = project_dir / "lawcrawl.yaml"
    if target.exists():
        console.print("  [dim]–[/] lawcrawl.yaml (exists, left unchanged)")
        return
    target.write_text(_PROJECT_YAML.format(dimensions=DEFAULT_DIMENSIONS), encoding="utf-8")
    console.print("  [green]✓[/] lawcrawl.yaml")


def _update_gitignore(project_dir: Path) -> None:
    target = project_dir / ".gitignore"
    existing = target.read_text(encoding="utf-8").splitlines() if target.exists() else []
    missing = [entry for entry in _GITIGNORE_ENTRIES if entry not in existing]
    if not missing:
        return
    lines = existing + (["", "# lawcrawl"] if existing else ["# lawcrawl"]) + missing
    target.write_text("\n".join(lines) + "\n", encoding="utf-8")
    console.print("  [green]✓[/] .gitignore")
