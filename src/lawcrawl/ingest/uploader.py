"""Binary asset (PDF) handoff.

The ingestion pipeline never reads PDF content; it hands the discovered PDF
URLs to an AssetUploader under a jurisdiction-derived key prefix
(``states/<state>``). LocalAssetUploader stores the files on disk.
"""

from __future__ import annotations

import logging
import posixpath
import urllib.parse
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from lawcrawl.ingest.web import USER_AGENT, check_ssrf, validate_scheme

logger = logging.getLogger(__name__)

_MAX_ASSET_BYTES = 50 * 1024 * 1024  # 50 MB
_DEFAULT_FILENAME = "downloaded_file"


@dataclass
class UploadResult:
    url: str
    key: str
    success: bool
    error: str | None = None


class AssetUploader(Protocol):
    def upload_many(self, urls: list[str], key_prefix: str) -> list[UploadResult]: ...


def asset_key(url: str, key_prefix: str) -> str:
    """``<key_prefix>/<basename of the URL path>``."""
    filename = posixpath.basename(urllib.parse.urlparse(url).path) or _DEFAULT_FILENAME
    return f"{key_prefix.strip('/')}/{filename}"


def state_prefix(jurisdiction: str) -> str:
    return f"states/{jurisdiction}"


class LocalAssetUploader:
    """Download assets into ``<root>/<key>``.

    One failed download never aborts the batch; it is reported in the
    matching UploadResult instead.
    """

    def __init__(
        self, root: Path | str, timeout: int = 30, allow_private: bool = False
    ) -> None:
        self.root = Path(root)
        self.timeout = timeout
        self.allow_private = allow_private

    def upload_many(self, urls: list[str], key_prefix: str) -> list[UploadResult]:
        results = [self.upload(url, asset_key(url, key_prefix)) for url in urls]
        ok = sum(1 for r in results if r.success)
        logger.info("Uploaded %d/%d assets under %s", ok, len(results), key_prefix)
        return results

    def upload(self, url: str, key: str) -> UploadResult:
        try:
            body = self._download(url)
            target = self.root / key
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(body)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Error uploading %s: %s", url, exc)
            return UploadResult(url=url, key=key, success=False, error=str(exc))
        logger.debug("Stored %s -> %s", url, key)
        return UploadResult(url=url, key=key, success=True)

    def _download(self, url: str) -> bytes:
        validate_scheme(url)
        if not self.allow_private:
            check_ssrf(url)
        request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
        with urllib.request.urlopen(request, timeout=self.timeout) as response:
            body = response.read(_MAX_ASSET_BYTES + 1)
        if len(body) > _MAX_ASSET_BYTES:
            raise ValueError(f"Asset exceeds {_MAX_ASSET_BYTES // (1024 * 1024)} MB: {url}")
        return body
