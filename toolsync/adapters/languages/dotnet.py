"""
NuGet backend: .NET global tools installed with ``--tool-path``.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from toolsync.adapters.base import NativeBackend
from toolsync.core.errors import PlacementError, VersionResolutionError
from toolsync.core.models.registry import RegistryEntry


def parse_tool_list(output: str) -> dict[str, tuple[str, list[str]]]:
    """Parse the ``dotnet tool list`` table into id -> (version, commands)."""
    tools: dict[str, tuple[str, list[str]]] = {}
    past_header = False
    for line in output.splitlines():
        if line.startswith("---"):
            past_header = True
            continue
        fields = line.split()
        if past_header and len(fields) >= 2:
            commands = [c.strip(",") for c in fields[2:]]
            tools[fields[0].lower()] = (fields[1], commands)
    return tools


class NugetBackend(NativeBackend):
    tool = "dotnet"

    @property
    def name(self) -> str:
        return "nuget"

    def _tool_path(self) -> list[str]:
        return ["--tool-path", str(self.bin_dir())]

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        if entry is not None and entry.version:
            return entry.version
        raise VersionResolutionError(f"No registry version declared for nuget:{package_id}")

    def _installed(self) -> dict[str, tuple[str, list[str]]]:
        result = self.run_tool(["tool", "list", *self._tool_path()], capture=True)
        return parse_tool_list(result.stdout) if result.ok else {}

    def fetch_and_place(self, package_id: str, version: str) -> None:
        self.bin_dir().mkdir(parents=True, exist_ok=True)
        verb = "update" if package_id.lower() in self._installed() else "install"
        args = ["tool", verb, package_id, *self._tool_path()]
        if version:
            args += ["--version", version]
        self.install_with(args, package_id)

    def installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        installed = self._installed()
        return {pid: installed[pid.lower()][0] for pid in package_ids if pid.lower() in installed}

    def exposed_binaries(self, package_id: str, entry: RegistryEntry | None) -> dict[str, Path]:
        commands = self._installed().get(package_id.lower(), ("", []))[1]
        if not commands:
            return super().exposed_binaries(package_id, entry)
        return {c: self.bin_dir() / c for c in commands if (self.bin_dir() / c).exists()}

    def uninstall(self, package_id: str) -> None:
        result = self.run_tool(["tool", "uninstall", package_id, *self._tool_path()])
        if not result.ok:
            raise PlacementError(f"dotnet tool uninstall {package_id} failed: {result.describe_failure()}")
