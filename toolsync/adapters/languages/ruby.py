"""
RubyGems backend: gems installed into a private GEM_HOME.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from toolsync.adapters.base import NativeBackend
from toolsync.core.errors import PlacementError, VersionResolutionError
from toolsync.core.models.exposure import RuntimeEnv
from toolsync.core.models.registry import RegistryEntry


def _gem_line(name: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(name)} \(([^)]+)\)")


class GemBackend(NativeBackend):
    tool = "gem"

    @property
    def name(self) -> str:
        return "gem"

    def tool_env(self) -> Mapping[str, str]:
        root = str(self.install_root)
        return {"GEM_HOME": root, "GEM_PATH": root}

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        out = self.query(["search", f"^{package_id}$", "--remote"], package_id)
        pattern = _gem_line(package_id)
        for line in out.splitlines():
            match = pattern.match(line.strip())
            if match:
                return match.group(1).split(",")[0].strip()
        raise VersionResolutionError(f"gem search found no release of {package_id}")

    def fetch_and_place(self, package_id: str, version: str) -> None:
        args = [
            "install", package_id,
            "--install-dir", str(self.install_root),
            "--bindir", str(self.bin_dir()),
            "--no-document",
        ]
        if version:
            args += ["--version", version]
        self.install_with(args, package_id)

    def installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        found = {}
        for package_id in package_ids:
            result = self.run_tool(["list", f"^{package_id}$", "--local"], capture=True)
            if not result.ok:
                continue
            for line in result.stdout.splitlines():
                match = _gem_line(package_id).match(line.strip())
                if match:
                    # "rubocop (1.64.1, 1.63.0)": newest first
                    found[package_id] = match.group(1).split(",")[0].strip()
        return found

    def runtime_env(self, package_id: str) -> RuntimeEnv:
        root = str(self.install_root)
        return RuntimeEnv(
            variables={"GEM_HOME": root, "GEM_PATH": root},
            prepend={"PATH": [str(self.bin_dir())]},
        )

    def uninstall(self, package_id: str) -> None:
        result = self.run_tool([
            "uninstall", package_id,
            "--install-dir", str(self.install_root),
            "--bindir", str(self.bin_dir()),
            "--all", "--executables", "--ignore-dependencies",
        ])
        if not result.ok:
            raise PlacementError(f"gem uninstall {package_id} failed: {result.describe_failure()}")
