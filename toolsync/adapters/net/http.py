"""
HTTP client: downloads and small JSON API calls over urllib.
"""

from __future__ import annotations

import json
import logging
import shutil
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any

from toolsync import __version__
from toolsync.core.errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENT = f"toolsync/{__version__}"
DEFAULT_TIMEOUT = 60

_NET_ERRORS = (urllib.error.URLError, OSError, ValueError)


class HttpClient:
    """Blocking HTTP GETs. Every failure surfaces as ``FetchError``."""

    def __init__(self, timeout: int = DEFAULT_TIMEOUT):
        self.timeout = timeout

    def _request(self, url: str, accept: str | None = None) -> urllib.request.Request:
        headers = {"User-Agent": USER_AGENT}
        if accept:
            headers["Accept"] = accept
        return urllib.request.Request(url, headers=headers)

    def download(self, url: str, dest: Path) -> Path:
        """Stream ``url`` into ``dest``. A partial file is removed on failure."""
        logger.info("Downloading %s", url)
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            with urllib.request.urlopen(self._request(url), timeout=self.timeout) as resp, \
                    dest.open("wb") as fh:
                shutil.copyfileobj(resp, fh)
        except _NET_ERRORS as e:
            dest.unlink(missing_ok=True)
            raise FetchError(f"Failed to download {url}: {e}") from e
        logger.debug("Downloaded %s (%d bytes)", dest.name, dest.stat().st_size)
        return dest

    def get_bytes(self, url: str, accept: str | None = None) -> bytes:
        try:
            with urllib.request.urlopen(self._request(url, accept), timeout=self.timeout) as resp:
                return resp.read()
        except _NET_ERRORS as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e

    def get_json(self, url: str) -> Any:
        body = self.get_bytes(url, "application/json")
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise FetchError(f"Invalid JSON from {url}: {e}") from e
