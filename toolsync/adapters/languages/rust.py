"""
Cargo backend: crates installed with ``cargo install --root``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

from toolsync.adapters.base import NativeBackend
from toolsync.core.errors import PlacementError, VersionResolutionError
from toolsync.core.models.registry import RegistryEntry

_LIST_PACKAGE = re.compile(r"^([A-Za-z0-9_-]+) v([^\s:]+)(?: \([^)]*\))?:$")


def parse_install_list(output: str) -> dict[str, tuple[str, list[str]]]:
    """Parse ``cargo install --list`` into crate -> (version, binaries)."""
    crates: dict[str, tuple[str, list[str]]] = {}
    current: str | None = None
    for line in output.splitlines():
        match = _LIST_PACKAGE.match(line.strip()) if not line.startswith((" ", "\t")) else None
        if match:
            current = match.group(1)
            crates[current] = (match.group(2), [])
        elif current and line.strip():
            crates[current][1].append(line.strip())
    return crates


class CargoBackend(NativeBackend):
    tool = "cargo"

    @property
    def name(self) -> str:
        return "cargo"

    def _root_args(self) -> list[str]:
        return ["--root", str(self.install_root)]

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        out = self.query(["search", package_id, "--limit", "1"], package_id)
        pattern = re.compile(rf'^{re.escape(package_id)}\s*=\s*"([^"]+)"')
        for line in out.splitlines():
            match = pattern.match(line.strip())
            if match:
                return match.group(1)
        raise VersionResolutionError(f"cargo search did not report a version for {package_id}")

    def fetch_and_place(self, package_id: str, version: str) -> None:
        args = ["install", *self._root_args(), package_id, "--force", "--locked"]
        if version:
            args += ["--version", version]
        self.install_with(args, package_id)

    def _installed(self) -> dict[str, tuple[str, list[str]]]:
        result = self.run_tool(["install", "--list", *self._root_args()], capture=True)
        if not result.ok:
            return {}
        return parse_install_list(result.stdout)

    def installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        installed = self._installed()
        return {pid: installed[pid][0] for pid in package_ids if pid in installed}

    def exposed_binaries(self, package_id: str, entry: RegistryEntry | None) -> dict[str, Path]:
        installed = self._installed()
        names = installed[package_id][1] if package_id in installed else []
        if not names:
            return super().exposed_binaries(package_id, entry)
        return {name: self.bin_dir() / name for name in names if (self.bin_dir() / name).exists()}

    def uninstall(self, package_id: str) -> None:
        result = self.run_tool(["uninstall", *self._root_args(), package_id])
        if not result.ok:
            raise PlacementError(f"cargo uninstall {package_id} failed: {result.describe_failure()}")
