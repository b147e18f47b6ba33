"""
Composer backend: packages required into a private composer project.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from toolsync.adapters.base import NativeBackend
from toolsync.core.errors import PlacementError, VersionResolutionError
from toolsync.core.models.exposure import RuntimeEnv
from toolsync.core.models.registry import RegistryEntry

_COMMON = ["--no-interaction", "--no-plugins", "--no-scripts"]


class ComposerBackend(NativeBackend):
    tool = "composer"

    @property
    def name(self) -> str:
        return "composer"

    def vendor_dir(self) -> Path:
        return self.install_root / "vendor"

    def bin_dir(self) -> Path:
        return self.vendor_dir() / "bin"

    def _working_dir(self) -> list[str]:
        return ["--working-dir", str(self.install_root)]

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        out = self.query(["show", "--all", package_id, "--no-interaction"], package_id)
        for line in out.splitlines():
            key, _, value = line.partition(":")
            if key.strip() == "versions" and value.strip():
                # "* 3.1.0, 3.0.2, ..." newest first, current marked with "*"
                return value.split(",")[0].strip().lstrip("* ").strip()
        raise VersionResolutionError(f"composer show listed no versions for {package_id}")

    def fetch_and_place(self, package_id: str, version: str) -> None:
        self.install_root.mkdir(parents=True, exist_ok=True)
        spec = f"{package_id}:{version}" if version else package_id
        self.install_with(["require", spec, *_COMMON, *self._working_dir()], package_id)

    def _installed_manifest(self) -> list[dict[str, Any]]:
        path = self.vendor_dir() / "composer" / "installed.json"
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return []
        # Composer 2 wraps the list in {"packages": [...]}
        packages = data.get("packages", []) if isinstance(data, dict) else data
        return [p for p in packages if isinstance(p, dict)]

    def installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        versions = {p.get("name"): p.get("version", "") for p in self._installed_manifest()}
        return {pid: str(versions[pid]) for pid in package_ids if versions.get(pid)}

    def binary_names(self, package_id: str, entry: RegistryEntry | None) -> list[str]:
        if entry is not None and entry.bin:
            return list(entry.bin)
        for package in self._installed_manifest():
            if package.get("name") == package_id and package.get("bin"):
                return [Path(b).name for b in package["bin"]]
        return super().binary_names(package_id, entry)

    def runtime_env(self, package_id: str) -> RuntimeEnv:
        return RuntimeEnv(
            variables={"COMPOSER_VENDOR_DIR": str(self.vendor_dir())},
            prepend={"PATH": [str(self.bin_dir())]},
        )

    def uninstall(self, package_id: str) -> None:
        result = self.run_tool(["remove", package_id, *_COMMON, *self._working_dir()])
        if not result.ok:
            raise PlacementError(f"composer remove {package_id} failed: {result.describe_failure()}")
