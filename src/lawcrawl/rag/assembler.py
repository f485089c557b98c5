"""Context assembly for the answer prompt.

Each accepted passage becomes one context entry::

    [Relevance Score: 0.912] <cleaned passage text>
    Source: <url>

Entries are separated by a blank line. The system prompt confines the model
to that context and to the requested state.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from lawcrawl.rag.relevance import ScoredPassage

_BADGE_RE = re.compile(r"\[!\[.*?\]\(.*?\)\]")
_LINK_RE = re.compile(r"\[([^\]]*)\]\(([^\)]*)\)")
_WS_RE = re.compile(r"\s+")
_SOURCE_TAIL_RE = re.compile(r"Source: .*$")

SYSTEM_TEMPLATE = """\
You are a friendly and helpful legal documentation assistant for US state laws. \
Your purpose is to help everyday people understand state-specific legal documentation \
and regulations in simple terms. You will answer user questions based on the provided context.

Here are your instructions for answering questions:

1. Base your answers ONLY on the provided context. If the context doesn't contain enough \
information to answer the question, say so.
2. Use clear, everyday language that non-lawyers can understand
3. Keep answers concise but complete
4. If relevant, mention specific sections of law that apply
5. If the context contains multiple relevant pieces of information, synthesize them into a coherent answer
6. If there are important caveats or exceptions, mention them
7. If the question is unclear, ask for clarification

If the information needed to answer a question is not available in the provided context, you should:

1. Clearly state that the information is not available in the provided data.
2. Avoid providing irrelevant sources or references.
3. Suggest general steps the user can take to find the information elsewhere \
(e.g., the relevant laws or regulations in the specified state).

Context: {context}

Remember:
- Explain everything in plain, everyday language
- Break down complex legal language into simple terms
- Keep your explanation accurate but easy to understand
- It's okay to simplify, but don't leave out important details

Rules:
- Do not include irrelevant sources or references.
- If the information is not available, clearly state that and avoid making assumptions.
- Only reference laws and regulations from the specified state.
- Do not mix information from different states."""

USER_TEMPLATE = "{question} [State: {state}]"


def clean_content(text: str) -> str:
    """Strip badges, unwrap links to their text, collapse whitespace, drop Source tails."""
    text = _BADGE_RE.sub("", text)
    text = _LINK_RE.sub(r"\1", text)
    text = _WS_RE.sub(" ", text).strip()
    text = _SOURCE_TAIL_RE.sub("", text)
    return text.strip()


def format_entry(text: str, score: float, url: str | None) -> str:
    source = f"\nSource: {url}" if url else ""
    return f"[Relevance Score: {score:.3f}] {clean_content(text)}{source}"


def build_context(results: Sequence[ScoredPassage]) -> str:
    return "\n\n".join(format_entry(p.text, score, p.url) for p, score in results)


def collect_sources(results: Sequence[ScoredPassage]) -> list[str]:
    """Distinct source URLs in first-seen order."""
    return list(dict.fromkeys(p.url for p, _ in results if p.url))


def build_messages(question: str, jurisdiction: str, context: str) -> list[dict]:
    return [
        {"role": "system", "content": SYSTEM_TEMPLATE.format(context=context)},
        {"role": "user", "content": USER_TEMPLATE.format(question=question, state=jurisdiction)},
    ]
