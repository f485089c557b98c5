"""Markdown-aware splitter: text → ordered atomic units for the semantic chunker.

Units are used positionally (unit i's neighbours are i-1, i+1, ...), so the
output must be deterministic and preserve document order.

Rules:
- A line starting with ``` toggles a fenced code block; the whole block,
  fences included, is one unit.
- A heading line (``#``) is always its own unit.
- A list item (``-``/``*``/``+`` or ``N.`` followed by whitespace) is always
  its own unit.
- A blank line ends the current paragraph.
- Paragraph prose is split greedily into sentences ending in ``.``, ``!`` or
  ``?``. Trailing text without terminal punctuation is kept as its own unit.
"""

from __future__ import annotations

import re

_FENCE = "```"
_BULLET_RE = re.compile(r"^[-*+]\s+")
_NUMBERED_RE = re.compile(r"^\d+\.\s+")
_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")


def split_units(text: str) -> list[str]:
    """Split markdown *text* into trimmed, non-empty units in document order."""
    units: list[str] = []
    paragraph: list[str] = []
    code: list[str] | None = None

    def flush_paragraph() -> None:
        if paragraph:
            units.extend(split_sentences(" ".join(paragraph)))
            paragraph.clear()

    for raw_line in text.split("\n"):
        line = raw_line.strip()

        if code is not None:
            code.append(raw_line.rstrip())
            if line.startswith(_FENCE):
                units.append("\n".join(code))
                code = None
            continue

        if line.startswith(_FENCE):
            flush_paragraph()
            code = [line]
            continue

        if not line:
            flush_paragraph()
            continue

        if line.startswith("#") or _BULLET_RE.match(line) or _NUMBERED_RE.match(line):
            flush_paragraph()
            units.append(line)
            continue

        paragraph.append(line)

    # Unterminated fence: keep what was collected.
    if code is not None:
        units.append("\n".join(code))
    flush_paragraph()

    return [u.strip() for u in units if u.strip()]


def split_sentences(prose: str) -> list[str]:
    """Greedy sentence split of a single paragraph."""
    sentences: list[str] = []
    end = 0
    for match in _SENTENCE_RE.finditer(prose):
        sentences.append(match.group())
        end = match.end()
    rest = prose[end:]
    if rest.strip():
        sentences.append(rest)
    return [s.strip() for s in sentences if s.strip()]
