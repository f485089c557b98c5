"""lawcrawl rich error messages: what went wrong, and what to do about it.

Usage:
    from lawcrawl.cli.errors import err_job_not_found
    console.print(err_job_not_found(job_id))
    raise typer.Exit(1)
"""

from __future__ import annotations

from lawcrawl.errors import LawcrawlError


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "cohere": "COHERE_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "azure": "AZURE_API_KEY",
        "huggingface": "HUGGINGFACE_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=..."
    )


def err_config(message: str) -> str:
    return f"[red]Config error:[/] {message}"


def err_job_not_found(job_id: str) -> str:
    return (
        f"[red]Error:[/] No crawl job with id '{job_id}'.\n"
        "  Run:  lawcrawl jobs list  to see recent jobs."
    )


def err_no_web_urls(urls: list[str]) -> str:
    """The crawl found nothing to ingest."""
    listed = "\n".join(f"    {u}" for u in urls)
    return (
        "[red]Error:[/] No web URLs found.\n"
        "  The crawler did not find any valid web pages to process.\n"
        f"  Start URLs:\n{listed}"
    )


def err_lawcrawl(exc: LawcrawlError) -> str:
    """Generic rendering for any LawcrawlError (kind + message, no traceback)."""
    return f"[red]Error ({exc.kind}):[/] {exc.message}"
