"""Tests for the lawcrawl entry point and error helpers."""

from __future__ import annotations

from typer.testing import CliRunner

from lawcrawl.cli.errors import err_job_not_found, err_lawcrawl, err_no_api_key
from lawcrawl.cli.main import app
from lawcrawl.errors import CrawlFailure

runner = CliRunner()


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("lawcrawl ")


def test_version_command():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "lawcrawl" in result.output


def test_help_lists_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("init", "crawl", "ingest", "ask", "jobs", "purge"):
        assert command in result.output


def test_err_lawcrawl_shows_kind_and_message():
    message = err_lawcrawl(CrawlFailure("nothing found"))
    assert "crawl_failure" in message
    assert "nothing found" in message


def test_err_no_api_key_names_env_var():
    assert "HUGGINGFACE_API_KEY" in err_no_api_key("huggingface")
    assert "GROQ_API_KEY" in err_no_api_key("groq")


def test_err_job_not_found_mentions_id():
    assert "abc123" in err_job_not_found("abc123")
