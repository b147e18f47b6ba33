"""
Go backend: modules installed with ``go install`` into a private GOBIN.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from toolsync.adapters.base import NativeBackend
from toolsync.adapters.shell.filesystem import remove_tree
from toolsync.core.errors import VersionResolutionError
from toolsync.core.models.registry import RegistryEntry

_MAJOR_SUFFIX = re.compile(r"^v\d+$")


class GolangBackend(NativeBackend):
    tool = "go"
    probe_args = ("version",)

    @property
    def name(self) -> str:
        return "golang"

    def tool_env(self) -> Mapping[str, str]:
        return {"GOBIN": str(self.bin_dir())}

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        # Output is "<module> v1 v2 ... vN", oldest first
        fields = self.query(["list", "-m", "-versions", package_id], package_id).split()
        if len(fields) < 2:
            raise VersionResolutionError(f"go list reported no versions for {package_id}")
        return fields[-1]

    def fetch_and_place(self, package_id: str, version: str) -> None:
        self.bin_dir().mkdir(parents=True, exist_ok=True)
        self.install_with(["install", f"{package_id}@{version or 'latest'}"], package_id)

    def binary_names(self, package_id: str, entry: RegistryEntry | None) -> list[str]:
        if entry is not None and entry.bin:
            return list(entry.bin)
        parts = [p for p in package_id.split("/") if p]
        # example.com/tool/v2 installs "tool"
        while len(parts) > 1 and _MAJOR_SUFFIX.match(parts[-1]):
            parts.pop()
        return [parts[-1]] if parts else []

    def uninstall(self, package_id: str) -> None:
        # GOBIN is shared; without our marker the binary may belong to another module
        if not self.read_version(package_id):
            return
        for name in self.binary_names(package_id, None):
            remove_tree(self.bin_dir() / name)
