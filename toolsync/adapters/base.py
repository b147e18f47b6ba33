"""
Backend base: the capability set every ecosystem adapter provides.

The reconciliation engine and the install strategies only ever talk
to a ``Backend``. Each ecosystem (cargo, npm, a git host, ...) is a
thin subclass that knows how to probe its tool, find the latest
version, and place a package on disk. The pipeline around those
calls is shared.

To add a new ecosystem:
    1. Subclass ``NativeBackend`` (or ``Backend`` for non-native kinds)
    2. Implement name, resolve_latest and fetch_and_place
    3. Register it in ``default_backends()``
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import ClassVar

from toolsync.adapters.shell.command import CommandResult, ShellExecutor
from toolsync.core.errors import BackendUnavailableError, FetchError, VersionResolutionError
from toolsync.core.models.exposure import RuntimeEnv
from toolsync.core.models.registry import RegistryEntry

logger = logging.getLogger(__name__)

VERSION_MARKER = ".toolsync-version"
_VERSIONS_DIR = ".versions"
_UNSAFE = re.compile(r"[/:\\]")


def safe_dir_name(package_id: str) -> str:
    """Flatten a package id into a single path component."""
    return _UNSAFE.sub("_", package_id)


class Backend(ABC):
    """One provider's view of the world.

    ``kind`` tells the strategy selector which pipeline applies:
    ``native`` (the ecosystem's own installer), ``git`` (clone and
    checkout, or release assets from the host) or ``release``
    (release assets only).
    """

    kind: ClassVar[str] = "native"

    def __init__(self, packages_dir: Path, executor: ShellExecutor | None = None):
        self._packages_dir = Path(packages_dir)
        self._executor = executor or ShellExecutor()

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name, as used in source identifiers."""

    @property
    def executor(self) -> ShellExecutor:
        return self._executor

    @property
    def install_root(self) -> Path:
        return self._packages_dir / self.name

    def install_dir(self, package_id: str) -> Path:
        """Directory owned by exactly one package."""
        return self.install_root / safe_dir_name(package_id)

    def package_dir(self, package_id: str) -> Path | None:
        """Directory holding only this package's files, or None if it shares the root."""
        path = self.install_dir(package_id)
        return None if path == self.install_root else path

    @property
    def requires_tool(self) -> bool:
        """Whether Sync must abort when ``is_available()`` is False."""
        return self.kind == "native"

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the backend's external tool can be used. Never raises."""

    @abstractmethod
    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        """Newest available version of a package.

        Raises:
            VersionResolutionError: the lookup failed or returned nothing.
        """

    def fetch_and_place(self, package_id: str, version: str) -> None:
        """Install one package at ``version`` into ``install_root``.

        Raises:
            FetchError: the backend tool failed.
        """
        raise FetchError(f"{self.name} packages cannot be installed natively")

    def uninstall(self, package_id: str) -> None:
        """Undo ``fetch_and_place``. Best-effort by default."""

    def supports_release_assets(self) -> bool:
        return False

    def asset_url(self, package_id: str, version: str, file_name: str) -> str:
        raise FetchError(f"{self.name} does not host release assets")

    def binary_names(self, package_id: str, entry: RegistryEntry | None) -> list[str]:
        """Names declared by the registry, else the package's last path segment."""
        if entry is not None and entry.bin:
            return list(entry.bin)
        return [package_id.rstrip("/").rsplit("/", 1)[-1]]

    def exposed_binaries(self, package_id: str, entry: RegistryEntry | None) -> dict[str, Path]:
        """Exposed name -> real executable, for an installed package."""
        return {}

    def runtime_env(self, package_id: str) -> RuntimeEnv | None:
        """Environment a wrapper must set, or None for a plain symlink."""
        return None

    # ── Installed state ─────────────────────────────────────────

    def installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        """package_id -> installed version, for ids that are installed."""
        found = {}
        for package_id in package_ids:
            version = self.read_version(package_id)
            if version:
                found[package_id] = version
        return found

    def _version_file(self, package_id: str) -> Path:
        return self.install_root / _VERSIONS_DIR / safe_dir_name(package_id)

    def read_version(self, package_id: str) -> str:
        path = self._version_file(package_id)
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError:
            return ""

    def record_version(self, package_id: str, version: str) -> None:
        path = self._version_file(package_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(version + "\n", encoding="utf-8")

    def forget_version(self, package_id: str) -> None:
        self._version_file(package_id).unlink(missing_ok=True)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class NativeBackend(Backend):
    """A provider backed by an ecosystem package manager.

    All packages of the provider share ``install_root``; binaries land
    in ``bin_dir()`` unless the subclass says otherwise.
    """

    kind: ClassVar[str] = "native"
    tool: ClassVar[str] = ""
    alternatives: ClassVar[tuple[str, ...]] = ()
    probe_args: ClassVar[tuple[str, ...]] = ("--version",)

    def __init__(self, packages_dir: Path, executor: ShellExecutor | None = None):
        super().__init__(packages_dir, executor)
        self._resolved_tool: str | None = None

    def install_dir(self, package_id: str) -> Path:
        return self.install_root

    def bin_dir(self) -> Path:
        return self.install_root / "bin"

    def tool_env(self) -> Mapping[str, str] | None:
        """Extra environment for every tool invocation."""
        return None

    def find_tool(self) -> str | None:
        if self._resolved_tool is None:
            for candidate in (self.tool, *self.alternatives):
                if candidate and self._executor.has_command(candidate, self.probe_args):
                    self._resolved_tool = candidate
                    break
        return self._resolved_tool

    def is_available(self) -> bool:
        try:
            return self.find_tool() is not None
        except OSError:
            return False

    def require_tool(self) -> str:
        tool = self.find_tool()
        if tool is None:
            names = " or ".join(c for c in (self.tool, *self.alternatives) if c)
            raise BackendUnavailableError(f"{names} is not installed; cannot manage {self.name} packages")
        return tool

    def run_tool(self, args: list[str], cwd: Path | None = None, capture: bool = False) -> CommandResult:
        tool = self.require_tool()
        run = self._executor.run_capture if capture else self._executor.run
        return run(tool, args, cwd=cwd, env=self.tool_env())

    def query(self, args: list[str], package_id: str, cwd: Path | None = None) -> str:
        """Run a lookup command and return stripped stdout.

        Raises:
            VersionResolutionError: non-zero exit or empty output.
        """
        result = self.run_tool(args, cwd=cwd, capture=True)
        if not result.ok:
            raise VersionResolutionError(
                f"Cannot look up {self.name}:{package_id}: {result.describe_failure()}"
            )
        out = result.stdout.strip()
        if not out:
            raise VersionResolutionError(f"No versions reported for {self.name}:{package_id}")
        return out

    def install_with(self, args: list[str], package_id: str, cwd: Path | None = None) -> None:
        """Run an install command, raising FetchError on failure."""
        result = self.run_tool(args, cwd=cwd)
        if not result.ok:
            raise FetchError(f"Failed to install {self.name}:{package_id}: {result.describe_failure()}")

    def exposed_binaries(self, package_id: str, entry: RegistryEntry | None) -> dict[str, Path]:
        found = {}
        for name in self.binary_names(package_id, entry):
            path = self.bin_dir() / name
            if path.exists():
                found[name] = path
        return found
