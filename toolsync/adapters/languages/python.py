"""
PyPI backend: each package gets its own ``pip install --target`` tree.

Console scripts written by pip only run with the package tree on
``PYTHONPATH``, so they are exposed through wrapper scripts.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

from toolsync.adapters.base import NativeBackend, safe_dir_name
from toolsync.adapters.shell.filesystem import is_executable, remove_tree
from toolsync.core.errors import VersionResolutionError
from toolsync.core.models.exposure import RuntimeEnv
from toolsync.core.models.registry import RegistryEntry

_INDEX_VERSION = re.compile(r"\(([^)]+)\)")
_NAME_SEPARATORS = re.compile(r"[-_.]+")


def canonical_name(name: str) -> str:
    """PEP 503 normalized project name."""
    return _NAME_SEPARATORS.sub("-", name).lower()


class PypiBackend(NativeBackend):
    tool = "pip"
    alternatives = ("pip3",)

    @property
    def name(self) -> str:
        return "pypi"

    def install_dir(self, package_id: str) -> Path:
        return self.install_root / safe_dir_name(canonical_name(package_id))

    def lib_dir(self, package_id: str) -> Path:
        return self.install_dir(package_id) / "lib"

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        out = self.query(["index", "versions", package_id], package_id)
        # "black (24.4.2)" on the first line
        match = _INDEX_VERSION.search(out.splitlines()[0])
        if not match:
            raise VersionResolutionError(f"Unexpected pip index output for {package_id}")
        return match.group(1)

    def fetch_and_place(self, package_id: str, version: str) -> None:
        target = self.lib_dir(package_id)
        target.mkdir(parents=True, exist_ok=True)
        spec = f"{package_id}=={version}" if version else package_id
        self.install_with(
            ["install", "--upgrade", "--no-input", "--target", str(target), spec],
            package_id,
        )

    def installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        found = {}
        for package_id in package_ids:
            wanted = canonical_name(package_id)
            lib = self.lib_dir(package_id)
            if not lib.is_dir():
                continue
            for info in lib.glob("*.dist-info"):
                name, _, version = info.name[: -len(".dist-info")].rpartition("-")
                if canonical_name(name) == wanted:
                    found[package_id] = version
                    break
        return found

    def exposed_binaries(self, package_id: str, entry: RegistryEntry | None) -> dict[str, Path]:
        scripts = self.lib_dir(package_id) / "bin"
        if not scripts.is_dir():
            return {}
        if entry is not None and entry.bin:
            return {name: scripts / name for name in entry.bin if (scripts / name).exists()}
        return {p.name: p for p in sorted(scripts.iterdir()) if is_executable(p)}

    def runtime_env(self, package_id: str) -> RuntimeEnv:
        lib = self.lib_dir(package_id)
        return RuntimeEnv(prepend={"PYTHONPATH": [str(lib)], "PATH": [str(lib / "bin")]})

    def uninstall(self, package_id: str) -> None:
        remove_tree(self.install_dir(package_id))
