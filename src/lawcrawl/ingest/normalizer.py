"""HTML → clean Markdown normaliser.

BeautifulSoup pre-pass (cleanup rules), html2text conversion, then a regex
post-pass over the Markdown.

Cleanup rules:
- script / style / iframe / noscript elements are dropped with their content.
- Paragraphs with no text are dropped.
- Dead links (no href, ``#``, ``javascript:``) are dropped with their text.
- Table cell alignment survives as padding: center → `` c ``, right → `` c``,
  anything else → ``c ``.
"""

from __future__ import annotations

import re

import html2text
from bs4 import BeautifulSoup, NavigableString, Tag

from lawcrawl.errors import InvalidInput

_STRIP_TAGS = ["script", "style", "iframe", "noscript"]
_BLANK_RUN_RE = re.compile(r"\n{3,}")
_TRAILING_WS_RE = re.compile(r"[ \t]+$", re.MULTILINE)
_NBSP = "\xa0"


def _converter() -> html2text.HTML2Text:
    h2t = html2text.HTML2Text()
    h2t.body_width = 0
    h2t.ignore_links = False
    h2t.inline_links = True
    h2t.ignore_images = False
    h2t.ul_item_mark = "-"
    h2t.emphasis_mark = "_"
    h2t.strong_mark = "**"
    h2t.backquote_code_style = True
    return h2t


def normalize_html(html: str) -> str:
    """Convert raw *html* to cleaned Markdown ending in a single newline.

    Raises:
        InvalidInput: If *html* is not a non-empty string.
    """
    if not isinstance(html, str) or not html:
        raise InvalidInput("Invalid input: HTML content must be a non-empty string")

    soup = BeautifulSoup(html, "html.parser")
    _clean(soup)

    # formatter="html" keeps alignment padding as &nbsp; entities so the
    # converter does not collapse it.
    markdown = _converter().handle(soup.decode(formatter="html"))
    markdown = markdown.replace(_NBSP, " ")

    markdown = _TRAILING_WS_RE.sub("", markdown)
    markdown = _BLANK_RUN_RE.sub("\n\n", markdown)
    return markdown.strip() + "\n"


def _clean(soup: BeautifulSoup) -> None:
    for tag in soup.find_all(_STRIP_TAGS):
        tag.decompose()

    for anchor in soup.find_all("a"):
        if _is_dead_link(anchor):
            anchor.decompose()

    for para in soup.find_all("p"):
        if not para.get_text(strip=True):
            para.decompose()

    for cell in soup.find_all(["th", "td"]):
        _pad_cell(cell)


def _is_dead_link(anchor: Tag) -> bool:
    href = (anchor.get("href") or "").strip()
    return not href or href == "#" or href.lower().startswith("javascript:")


def _pad_cell(cell: Tag) -> None:
    align = (cell.get("align") or "").strip().lower()
    if align == "center":
        cell.insert(0, NavigableString(_NBSP))
        cell.append(NavigableString(_NBSP))
    elif align == "right":
        cell.insert(0, NavigableString(_NBSP))
    else:
        cell.append(NavigableString(_NBSP))
