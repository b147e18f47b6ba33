"""
npm backend: packages installed with ``npm install --prefix``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from toolsync.adapters.base import NativeBackend
from toolsync.core.errors import PlacementError
from toolsync.core.models.registry import RegistryEntry

logger = logging.getLogger(__name__)


class NpmBackend(NativeBackend):
    tool = "npm"

    @property
    def name(self) -> str:
        return "npm"

    def package_dir(self, package_id: str) -> Path:
        return self.install_root / "node_modules" / package_id

    def _manifest(self, package_id: str) -> dict[str, Any]:
        path = self.package_dir(package_id) / "package.json"
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        out = self.query(["view", package_id, "version"], package_id)
        return out.splitlines()[-1].strip()

    def fetch_and_place(self, package_id: str, version: str) -> None:
        self.install_root.mkdir(parents=True, exist_ok=True)
        spec = f"{package_id}@{version}" if version else package_id
        self.install_with(["install", "--prefix", str(self.install_root), spec], package_id)

    def installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        found = {}
        for package_id in package_ids:
            version = self._manifest(package_id).get("version")
            if isinstance(version, str) and version:
                found[package_id] = version
        return found

    def exposed_binaries(self, package_id: str, entry: RegistryEntry | None) -> dict[str, Path]:
        bins = self._manifest(package_id).get("bin")
        if isinstance(bins, str):
            bins = {package_id.rsplit("/", 1)[-1]: bins}
        # Only the manifest says which commands a package ships
        if not isinstance(bins, dict):
            return {}

        package_dir = self.package_dir(package_id)
        found = {}
        for name, rel in bins.items():
            target = package_dir / str(rel)
            if target.is_file():
                found[name] = target
            else:
                logger.debug("npm bin %s for %s not found", name, package_id)
        return found

    def uninstall(self, package_id: str) -> None:
        result = self.run_tool(["uninstall", "--prefix", str(self.install_root), package_id])
        if not result.ok:
            raise PlacementError(f"npm uninstall {package_id} failed: {result.describe_failure()}")
