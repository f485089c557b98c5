"""Same-domain breadth-first link discovery.

Starting from one or more URLs, follow links on the same host(s), splitting
what is found into web pages and PDFs. The crawl stops once the number of
discovered URLs reaches ``max_urls``. robots.txt is honoured; an unreachable
robots.txt allows everything.
"""

from __future__ import annotations

import logging
import urllib.parse
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from urllib.robotparser import RobotFileParser

from bs4 import BeautifulSoup

from lawcrawl.ingest.web import USER_AGENT, FetchedPage, WebFetcher

logger = logging.getLogger(__name__)


@dataclass
class CrawlResult:
    web_urls: list[str] = field(default_factory=list)
    pdf_urls: list[str] = field(default_factory=list)
    failed_urls: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.web_urls) + len(self.pdf_urls)


def _host(url: str) -> str:
    host = (urllib.parse.urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def _normalize(url: str) -> str:
    return urllib.parse.urldefrag(url)[0]


def extract_links(page_url: str, html: str) -> list[str]:
    """Absolute http(s) links found in *html*, fragments removed, in page order."""
    soup = BeautifulSoup(html, "html.parser")
    links: list[str] = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
            continue
        absolute = _normalize(urllib.parse.urljoin(page_url, href))
        if urllib.parse.urlparse(absolute).scheme in ("http", "https"):
            links.append(absolute)
    return links


class Crawler:
    """Breadth-first crawler over a WebFetcher.

    Args:
        fetcher:      Fetcher used for pages and robots.txt.
        max_workers:  Pages fetched concurrently per frontier batch.
        respect_robots: Check robots.txt before each fetch.
    """

    def __init__(
        self,
        fetcher: WebFetcher,
        max_workers: int = 8,
        respect_robots: bool = True,
    ) -> None:
        self._fetcher = fetcher
        self.max_workers = max(1, max_workers)
        self.respect_robots = respect_robots
        self._robots: dict[str, RobotFileParser | None] = {}

    def crawl(self, start_urls: list[str], max_urls: int = 1000) -> CrawlResult:
        """Discover up to *max_urls* web and PDF URLs reachable from *start_urls*."""
        result = CrawlResult()
        allowed_hosts = {_host(u) for u in start_urls}
        seen: set[str] = set()
        frontier: list[str] = []
        for url in start_urls:
            url = _normalize(url)
            if url not in seen:
                seen.add(url)
                frontier.append(url)

        while frontier and result.total < max_urls:
            batch = frontier[: self.max_workers]
            frontier = frontier[self.max_workers:]
            batch = [u for u in batch if self._allowed(u)]
            if not batch:
                continue

            with ThreadPoolExecutor(max_workers=len(batch)) as executor:
                outcomes = list(executor.map(self._fetch, batch))

            for url, page in zip(batch, outcomes):
                if result.total >= max_urls:
                    break
                if page is None:
                    # A failed page still counts as a web URL, so the page
                    # fetch step reports it.
                    result.failed_urls.append(url)
                    result.web_urls.append(url)
                    continue
                if page.is_pdf or urllib.parse.urlparse(url).path.lower().endswith(".pdf"):
                    logger.info("Found PDF: %s", url)
                    result.pdf_urls.append(url)
                    continue
                result.web_urls.append(url)
                for link in extract_links(page.url, page.text):
                    if link not in seen and _host(link) in allowed_hosts:
                        seen.add(link)
                        frontier.append(link)

        logger.info(
            "Crawl finished: %d web, %d pdf, %d failed",
            len(result.web_urls),
            len(result.pdf_urls),
            len(result.failed_urls),
        )
        return result

    def _fetch(self, url: str) -> FetchedPage | None:
        try:
            return self._fetcher.fetch_page(url)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Request failed: %s (%s)", url, exc)
            return None

    # ------------------------------------------------------------------
    # robots.txt
    # ------------------------------------------------------------------

    def _allowed(self, url: str) -> bool:
        if not self.respect_robots:
            return True
        parsed = urllib.parse.urlparse(url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        if origin not in self._robots:
            self._robots[origin] = self._load_robots(origin)
        parser = self._robots[origin]
        if parser is None:
            return True
        allowed = parser.can_fetch(USER_AGENT, url)
        if not allowed:
            logger.info("Skipping %s (blocked by robots.txt)", url)
        return allowed

    def _load_robots(self, origin: str) -> RobotFileParser | None:
        robots_url = f"{origin}/robots.txt"
        try:
            page = self._fetcher.fetch_page(robots_url)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Could not fetch robots.txt for %s: %s", origin, exc)
            return None
        parser = RobotFileParser()
        parser.set_url(robots_url)
        parser.parse(page.text.splitlines())
        return parser
