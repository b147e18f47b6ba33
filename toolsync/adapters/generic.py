"""
Generic backend: packages published as plain downloadable archives.

The registry entry carries everything: the asset file template is the
full download URL, and the entry's own version is the latest one.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import ClassVar

from toolsync.adapters.base import VERSION_MARKER, Backend
from toolsync.core.errors import FetchError, VersionResolutionError
from toolsync.core.models.registry import RegistryEntry


class GenericBackend(Backend):
    kind: ClassVar[str] = "release"

    @property
    def name(self) -> str:
        return "generic"

    def is_available(self) -> bool:
        return True

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        if entry is None or not entry.version:
            raise VersionResolutionError(f"No registry version declared for generic:{package_id}")
        return entry.version

    def supports_release_assets(self) -> bool:
        return True

    def asset_url(self, package_id: str, version: str, file_name: str) -> str:
        if "://" not in file_name:
            raise FetchError(f"generic:{package_id} asset '{file_name}' is not a URL")
        return file_name

    def installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        found = {}
        for package_id in package_ids:
            marker = self.install_dir(package_id) / VERSION_MARKER
            if marker.is_file():
                found[package_id] = marker.read_text(encoding="utf-8").strip()
        return found
