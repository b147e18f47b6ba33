"""
Mock adapters: test doubles for the executor and for backends.

``MockExecutor`` answers subprocess calls from a script instead of
running anything. ``MockBackend`` is a complete backend whose
"installs" are plain files under its install root, so the whole
reconciliation pipeline can run against a temp directory.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import ClassVar

from toolsync.adapters.base import Backend
from toolsync.adapters.shell.command import CommandResult, ShellExecutor
from toolsync.adapters.shell.filesystem import make_executable, remove_tree
from toolsync.core.errors import FetchError, VersionResolutionError
from toolsync.core.models.exposure import RuntimeEnv
from toolsync.core.models.registry import RegistryEntry


class MockExecutor(ShellExecutor):
    """Scripted executor.

    Responses are keyed by the command plus a prefix of its arguments;
    the longest matching prefix wins. Unscripted calls succeed with
    empty output.
    """

    def __init__(self, commands: Iterable[str] = ()):
        self._available = set(commands)
        self._responses: dict[tuple[str, ...], CommandResult] = {}
        self._call_log: list[list[str]] = []

    @property
    def call_log(self) -> list[list[str]]:
        """Every argv this executor has received, in order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def add_command(self, command: str) -> None:
        self._available.add(command)

    def set_response(self, argv_prefix: Sequence[str], stdout: str = "", returncode: int = 0, stderr: str = "") -> None:
        self._responses[tuple(argv_prefix)] = CommandResult(
            command=list(argv_prefix), returncode=returncode, stdout=stdout, stderr=stderr,
        )

    def set_failure(self, argv_prefix: Sequence[str], stderr: str = "mock failure", returncode: int = 1) -> None:
        self.set_response(argv_prefix, returncode=returncode, stderr=stderr)

    def calls_to(self, command: str) -> list[list[str]]:
        return [argv for argv in self._call_log if argv[0] == command]

    def has_command(self, command, probe_args=("--version",), env=None) -> bool:
        return command in self._available

    def _invoke(self, command, args, cwd, env) -> CommandResult:
        argv = [command, *args]
        self._call_log.append(argv)
        if command not in self._available:
            return CommandResult(command=argv, returncode=127, error=f"Command not found: {command}")

        best: CommandResult | None = None
        best_len = -1
        for prefix, response in self._responses.items():
            if len(prefix) > best_len and tuple(argv[: len(prefix)]) == prefix:
                best, best_len = response, len(prefix)
        if best is None:
            return CommandResult(command=argv)
        return CommandResult(
            command=argv, returncode=best.returncode, stdout=best.stdout, stderr=best.stderr,
        )

    def reset(self) -> None:
        self._call_log.clear()
        self._responses.clear()


class MockBackend(Backend):
    """In-memory backend that installs fake executables.

    ``latest`` maps package ids to the version ``resolve_latest`` reports.
    Each install writes ``<install_dir>/bin/<name>`` and records the
    version marker, so installed state survives across engine calls.
    """

    kind: ClassVar[str] = "native"

    def __init__(
        self,
        packages_dir: Path,
        provider: str = "npm",
        available: bool = True,
        latest: Mapping[str, str] | None = None,
        env: RuntimeEnv | None = None,
    ):
        super().__init__(packages_dir, ShellExecutor())
        self._name = provider
        self._available = available
        self.latest = dict(latest or {})
        self.env = env
        self._fail_fetch: dict[str, str] = {}
        self._fail_resolve: dict[str, str] = {}
        self._call_log: list[tuple[str, str, str]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[tuple[str, str, str]]:
        """(operation, package_id, version) for every mutating call."""
        return self._call_log

    def calls(self, operation: str) -> list[tuple[str, str, str]]:
        return [c for c in self._call_log if c[0] == operation]

    def set_available(self, available: bool) -> None:
        self._available = available

    def set_fetch_failure(self, package_id: str, error: str = "mock fetch failure") -> None:
        self._fail_fetch[package_id] = error

    def set_resolve_failure(self, package_id: str, error: str = "mock resolve failure") -> None:
        self._fail_resolve[package_id] = error

    def is_available(self) -> bool:
        return self._available

    def install_dir(self, package_id: str) -> Path:
        return self.install_root

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        self._call_log.append(("resolve", package_id, ""))
        if package_id in self._fail_resolve:
            raise VersionResolutionError(self._fail_resolve[package_id])
        if package_id not in self.latest:
            raise VersionResolutionError(f"{package_id} not found")
        return self.latest[package_id]

    def fetch_and_place(self, package_id: str, version: str) -> None:
        self._call_log.append(("fetch", package_id, version))
        if package_id in self._fail_fetch:
            raise FetchError(self._fail_fetch[package_id])
        for name in self.binary_names(package_id, None):
            exe = self.install_root / "bin" / name
            exe.parent.mkdir(parents=True, exist_ok=True)
            exe.write_text(f"#!/bin/sh\necho {name} {version}\n", encoding="utf-8")
            make_executable(exe)

    def uninstall(self, package_id: str) -> None:
        self._call_log.append(("uninstall", package_id, ""))
        for name in self.binary_names(package_id, None):
            remove_tree(self.install_root / "bin" / name)

    def exposed_binaries(self, package_id: str, entry: RegistryEntry | None) -> dict[str, Path]:
        found = {}
        for name in self.binary_names(package_id, entry):
            exe = self.install_root / "bin" / name
            if exe.is_file():
                found[name] = exe
        return found

    def runtime_env(self, package_id: str) -> RuntimeEnv | None:
        return self.env

    def reset(self) -> None:
        self._call_log.clear()
        self._fail_fetch.clear()
        self._fail_resolve.clear()
