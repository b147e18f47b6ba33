"""
Registry cache: read-through, process-wide view of the registry file.

The index is built on first read and replaced wholesale on refresh.
Readers always hold a reference to one complete index, so a refresh
in another thread never exposes a half-built mapping.
"""

from __future__ import annotations

import io
import json
import logging
import os
import tempfile
import threading
import time
import zipfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from toolsync.adapters.net.http import HttpClient
from toolsync.core.errors import FetchError, StateWriteError
from toolsync.core.models.registry import RegistryEntry
from toolsync.core.services.source_id import normalize

logger = logging.getLogger(__name__)

REGISTRY_FILE_NAME = "registry.json"


def parse_registry(raw: Any) -> dict[str, RegistryEntry]:
    """Build the normalized-id index from a decoded registry document."""
    if not isinstance(raw, list):
        raise ValueError("registry document must be a JSON array")
    index: dict[str, RegistryEntry] = {}
    for item in raw:
        try:
            entry = RegistryEntry.model_validate(item)
        except ValidationError as e:
            name = item.get("name", "?") if isinstance(item, dict) else "?"
            logger.debug("Skipping malformed registry entry %s: %s", name, e.errors()[0]["msg"])
            continue
        index[normalize(entry.source_id)] = entry
    return index


class RegistryCache:
    """Lazily loaded registry index keyed by normalized source id."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._index: dict[str, RegistryEntry] | None = None

    def _load(self) -> dict[str, RegistryEntry]:
        if not self.path.is_file():
            logger.info("No registry at %s; run 'toolsync sync registry'", self.path)
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            index = parse_registry(raw)
        except (OSError, ValueError) as e:
            logger.warning("Cannot read registry %s: %s", self.path, e)
            return {}
        logger.debug("Loaded %d registry entries from %s", len(index), self.path)
        return index

    def _current(self, force: bool = False) -> dict[str, RegistryEntry]:
        index = self._index
        if index is not None and not force:
            return index
        with self._lock:
            if self._index is None or force:
                self._index = self._load()
            return self._index

    def refresh(self) -> int:
        """Reload from disk. Returns the number of entries."""
        return len(self._current(force=True))

    def get(self, source_id: str) -> RegistryEntry | None:
        return self._current().get(normalize(source_id))

    def entries(self) -> list[RegistryEntry]:
        return sorted(self._current().values(), key=lambda e: e.name.lower())

    def __len__(self) -> int:
        return len(self._current())

    # ── Freshness ───────────────────────────────────────────────

    def age_seconds(self) -> float | None:
        try:
            return time.time() - self.path.stat().st_mtime
        except OSError:
            return None

    def is_fresh(self, max_age_hours: float) -> bool:
        age = self.age_seconds()
        return age is not None and age < max_age_hours * 3600


def _extract_json(payload: bytes) -> bytes:
    """Registry downloads may be zipped; return the JSON document."""
    if not zipfile.is_zipfile(io.BytesIO(payload)):
        return payload
    with zipfile.ZipFile(io.BytesIO(payload)) as zf:
        members = [n for n in zf.namelist() if n.endswith(".json")]
        if not members:
            raise FetchError("registry archive contains no JSON document")
        return zf.read(members[0])


def download_registry(url: str, dest: Path, http: HttpClient) -> int:
    """Fetch the registry, validate it, and atomically replace ``dest``.

    Returns:
        Number of entries in the new registry.

    Raises:
        FetchError: download failed or the document is not a registry.
        StateWriteError: the cache file could not be written.
    """
    body = _extract_json(http.get_bytes(url))
    try:
        count = len(parse_registry(json.loads(body)))
    except ValueError as e:
        raise FetchError(f"Downloaded registry is invalid: {e}") from e

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=dest.parent, prefix=".registry_", suffix=".tmp")
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(body)
            tmp.replace(dest)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as e:
        raise StateWriteError(f"Cannot write registry cache {dest}: {e}") from e
    logger.info("Registry updated: %d entries", count)
    return count
