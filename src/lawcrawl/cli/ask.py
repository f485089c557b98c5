"""lawcrawl ask: answer a question from one state's ingested passages.

Usage:
  lawcrawl ask --state NY "What is the statute of limitations for fraud?"
  lawcrawl ask --state NY --json "..."

Without --json the answer is rendered as Markdown followed by its sources.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markdown import Markdown

from lawcrawl.cli.common import console, emit_json, load_config_or_exit, open_context, resolve_db
from lawcrawl.cli.errors import err_lawcrawl, err_no_api_key
from lawcrawl.errors import LawcrawlError
from lawcrawl.ingest.pipeline import parse_jurisdiction
from lawcrawl.rag.engine import parse_question
from lawcrawl.rag.llm_client import MissingApiKey


def ask_cmd(
    question: Annotated[str, typer.Argument(help="The question to answer.")],
    state: Annotated[
        str,
        typer.Option("--state", "-s", help="State whose laws the question is about."),
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the response body as JSON."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the lawcrawl database (default: storage.db_path)."),
    ] = None,
) -> None:
    """Answer a legal question for one state, with sources."""
    cfg = load_config_or_exit()
    db_path = resolve_db(db, cfg)

    try:
        question = parse_question({"question": question})
        state = parse_jurisdiction(state)
    except LawcrawlError as exc:
        console.print(err_lawcrawl(exc))
        raise typer.Exit(1) from exc

    try:
        with open_context(cfg, db_path) as ctx:
            answer = ctx.query_engine.answer(question, state)
    except MissingApiKey as exc:
        console.print(err_no_api_key(exc.provider))
        raise typer.Exit(1) from exc
    except LawcrawlError as exc:
        console.print(err_lawcrawl(exc))
        raise typer.Exit(1) from exc

    if json_output:
        emit_json(answer.to_response())
        return

    console.print(Markdown(answer.content))
    if answer.sources:
        console.print("\n[bold]Sources:[/]")
        for source in answer.sources:
            console.print(f"  {source}")
    if answer.cached:
        console.print("[dim](cached)[/]")
