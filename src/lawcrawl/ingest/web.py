"""Web fetcher with SSRF protection, bounded retries and a rendering-mode check.

Security requirements:
- SSRF guard: ipaddress module blocks private/loopback/link-local ranges before
  any connection is established (and again on every redirect hop).
- Allowed URL schemes: https:// and http:// only.
- Content-Type whitelist: HTML, plain text, and PDF (PDF bodies are not read).
- Max response body: 5 MB.
- Timeout: 30 seconds (connect + read) by default.
- Max redirects: 3.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
import time
import urllib.error
import urllib.parse
import urllib.request
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from http.client import HTTPResponse
from typing import Protocol

from bs4 import BeautifulSoup

from lawcrawl.errors import CrawlFailure, InvalidInput

logger = logging.getLogger(__name__)

USER_AGENT = "lawcrawl/0.1 (+https://github.com/lawcrawl/lawcrawl)"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http"}
PDF_CONTENT_TYPE = "application/pdf"
_ALLOWED_CONTENT_TYPES = {"text/html", "application/xhtml+xml", "text/plain", PDF_CONTENT_TYPE}

# Substrings of URLs known to need a JavaScript-capable renderer.
JS_REQUIRED_MARKERS = ("nysenate.gov", "react", "angular", "vue", "spa", "dashboard")
_SPA_MOUNT_IDS = ("root", "app", "__next", "__nuxt")
_MIN_STATIC_TEXT = 200
_MANY_SCRIPTS = 5


class SsrfError(InvalidInput):
    """Raised when a URL resolves to a private or reserved address."""

    kind = "ssrf_blocked"


@dataclass
class FetchedPage:
    url: str
    content_type: str
    body: bytes = b""

    @property
    def is_pdf(self) -> bool:
        return self.content_type == PDF_CONTENT_TYPE

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class BrowserFetcher(Protocol):
    """Renders a page with JavaScript enabled and returns the final HTML."""

    def fetch(self, url: str) -> str: ...


def validate_scheme(url: str) -> None:
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        raise InvalidInput(
            f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
        )


def check_ssrf(url: str) -> None:
    """Resolve the hostname and block private/reserved IP ranges.

    Raises SsrfError if any resolved address is private, loopback,
    link-local, or otherwise reserved.
    """
    parsed = urllib.parse.urlparse(url)
    hostname = parsed.hostname
    if not hostname:
        raise InvalidInput(f"URL has no hostname: {url}")

    try:
        addrinfos = socket.getaddrinfo(hostname, None)
    except socket.gaierror as exc:
        raise CrawlFailure(f"DNS resolution failed for '{hostname}': {exc}") from exc

    for addrinfo in addrinfos:
        addr_str = addrinfo[4][0]
        try:
            ip = ipaddress.ip_address(addr_str)
        except ValueError:
            continue
        if (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_reserved
            or ip.is_multicast
            or ip.is_unspecified
        ):
            raise SsrfError(
                f"URL resolves to private address ({ip}). "
                "Access to internal network addresses is not allowed."
            )


def requires_javascript(url: str, raw_html: str) -> bool:
    """Heuristic: does *url* need a JavaScript renderer to show its content?

    True when the URL carries a known JS-heavy marker, or when the static
    HTML has almost no visible text but looks like a single-page-app shell
    (a known mount point or many script tags). Parse errors count as False.
    """
    lowered = url.lower()
    if any(marker in lowered for marker in JS_REQUIRED_MARKERS):
        return True
    if not raw_html:
        return False
    try:
        soup = BeautifulSoup(raw_html, "html.parser")
        scripts = len(soup.find_all("script"))
        for tag in soup.find_all(["script", "style", "noscript"]):
            tag.decompose()
        visible = soup.get_text(" ", strip=True)
        if len(visible) >= _MIN_STATIC_TEXT:
            return False
        has_mount = any(soup.find(id=mount) is not None for mount in _SPA_MOUNT_IDS)
        return has_mount or scripts >= _MANY_SCRIPTS
    except Exception as exc:  # noqa: BLE001
        logger.warning("JavaScript check failed for %s: %s", url, exc)
        return False


class WebFetcher:
    """Fetch pages over HTTP(S) with the SSRF guard applied before connecting.

    Args:
        timeout:         Per-request timeout in seconds.
        max_retries:     Extra attempts after a transient failure.
        max_workers:     Thread pool size for fetch_many().
        browser_fetcher: Optional JS renderer used for pages that need one.
        allow_private:   Skip the SSRF guard (local testing only).
    """

    def __init__(
        self,
        timeout: int = 30,
        max_retries: int = 3,
        max_workers: int = 8,
        browser_fetcher: BrowserFetcher | None = None,
        allow_private: bool = False,
        retry_delay: float = 0.5,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.max_workers = max(1, max_workers)
        self.browser_fetcher = browser_fetcher
        self.allow_private = allow_private
        self.retry_delay = retry_delay

    # ------------------------------------------------------------------
    # Single page
    # ------------------------------------------------------------------

    def fetch_page(self, url: str) -> FetchedPage:
        """Fetch *url* with retries. PDF responses come back with an empty body."""
        validate_scheme(url)
        if not self.allow_private:
            check_ssrf(url)

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._fetch_once(url)
            except _TransientFetchError as exc:
                last_error = exc
                logger.debug("Fetch attempt %d for %s failed: %s", attempt + 1, url, exc)
                if attempt < self.max_retries and self.retry_delay:
                    time.sleep(self.retry_delay * (2 ** attempt))
        raise CrawlFailure(f"Failed to fetch URL '{url}': {last_error}") from last_error

    def fetch(self, url: str) -> str:
        """Return the HTML for *url*, rendered with JavaScript when required."""
        page = self.fetch_page(url)
        if page.is_pdf:
            raise CrawlFailure(f"URL '{url}' is a PDF, not a web page.")
        html = page.text
        if requires_javascript(url, html):
            if self.browser_fetcher is not None:
                logger.info("Rendering %s with JavaScript", url)
                return self.browser_fetcher.fetch(url)
            logger.warning(
                "%s looks like it needs JavaScript but no browser fetcher is configured; "
                "using static HTML",
                url,
            )
        return html

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def fetch_many(self, urls: list[str]) -> list[tuple[str, str | None]]:
        """Fetch *urls* concurrently. Failed pages yield ``(url, None)``.

        Results keep the order of *urls*.
        """
        if not urls:
            return []
        results: list[tuple[str, str | None]] = [(u, None) for u in urls]
        workers = min(self.max_workers, len(urls))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_map = {executor.submit(self.fetch, u): i for i, u in enumerate(urls)}
            for future in as_completed(future_map):
                i = future_map[future]
                try:
                    results[i] = (urls[i], future.result())
                except Exception as exc:  # noqa: BLE001
                    logger.warning("Failed to fetch %s: %s", urls[i], exc)
        return results

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _fetch_once(self, url: str) -> FetchedPage:
        request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        opener = urllib.request.build_opener(
            _LimitedRedirectHandler(_MAX_REDIRECTS, check_hosts=not self.allow_private)
        )

        try:
            response: HTTPResponse = opener.open(request, timeout=self.timeout)
        except urllib.error.HTTPError as exc:
            if exc.code >= 500 or exc.code == 429:
                raise _TransientFetchError(str(exc)) from exc
            raise CrawlFailure(f"Failed to fetch URL '{url}': HTTP {exc.code}") from exc
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise _TransientFetchError(str(exc)) from exc

        with response:
            final_url = response.geturl() or url
            raw_ct = response.headers.get("Content-Type", "text/html")
            ct = raw_ct.split(";")[0].strip().lower()
            if ct not in _ALLOWED_CONTENT_TYPES:
                raise CrawlFailure(
                    f"Unsupported Content-Type '{ct}' for URL '{url}'. "
                    f"Accepted: {', '.join(sorted(_ALLOWED_CONTENT_TYPES))}"
                )
            if ct == PDF_CONTENT_TYPE:
                return FetchedPage(url=final_url, content_type=ct)

            body = response.read(_MAX_BYTES + 1)
            if len(body) > _MAX_BYTES:
                raise CrawlFailure(
                    f"Response body exceeds {_MAX_BYTES // (1024 * 1024)} MB limit for URL '{url}'."
                )
        return FetchedPage(url=final_url, content_type=ct, body=body)


class _TransientFetchError(Exception):
    """Network-level failure worth retrying."""


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Raise an error after more than *max_redirects* redirects."""

    def __init__(self, max_redirects: int, check_hosts: bool = True) -> None:
        self._max_redirects = max_redirects
        self._check_hosts = check_hosts
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise CrawlFailure(
                f"Too many redirects (>{self._max_redirects}) for URL '{req.full_url}'."
            )
        validate_scheme(newurl)
        if self._check_hosts:
            check_ssrf(newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)
