"""
Registry sync use case: refresh the cached package registry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from toolsync.adapters.net.http import HttpClient
from toolsync.core.config.loader import Settings
from toolsync.core.errors import ToolsyncError
from toolsync.core.persistence.registry_cache import RegistryCache, download_registry

logger = logging.getLogger(__name__)


@dataclass
class RegistrySyncResult:
    """Result of a registry refresh."""

    updated: bool = False
    skipped: bool = False
    entries: int = 0
    source: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "updated": self.updated,
            "skipped": self.skipped,
            "entries": self.entries,
            "source": self.source,
            "error": self.error,
        }


def sync_registry(
    settings: Settings,
    cache: RegistryCache | None = None,
    http: HttpClient | None = None,
    force: bool = False,
) -> RegistrySyncResult:
    """Download the registry unless the cached copy is still fresh.

    Args:
        settings: Resolved settings (URL, cache path, max age).
        cache: Cache to refresh after a download. A new one is built
            over ``settings.registry_path`` when omitted.
        http: HTTP client, mainly for tests.
        force: Download even when the cache is fresh.
    """
    if cache is None:
        cache = RegistryCache(settings.registry_path)
    result = RegistrySyncResult(source=settings.registry_url)

    if not force and cache.is_fresh(settings.cache_max_age_hours):
        result.skipped = True
        result.entries = len(cache)
        logger.info("Registry is fresh (%d entries), skipping download", result.entries)
        return result

    http = http or HttpClient(timeout=settings.http_timeout)
    try:
        download_registry(settings.registry_url, settings.registry_path, http)
    except ToolsyncError as e:
        logger.error("Registry sync failed: %s", e)
        result.error = str(e)
        return result

    result.entries = cache.refresh()
    result.updated = True
    return result


def ensure_registry(settings: Settings, cache: RegistryCache, http: HttpClient | None = None) -> None:
    """Fetch the registry once if there is no cached copy at all.

    Installs still work without a registry (native providers resolve
    versions themselves), so a failure here is only logged.
    """
    if settings.registry_path.is_file():
        return
    logger.info("No registry cache yet, downloading from %s", settings.registry_url)
    sync_registry(settings, cache, http, force=True)
