"""
opam backend: one local switch per package.
"""

from __future__ import annotations

from pathlib import Path

from toolsync.adapters.base import NativeBackend, safe_dir_name
from toolsync.adapters.shell.filesystem import remove_tree
from toolsync.core.models.exposure import RuntimeEnv
from toolsync.core.models.registry import RegistryEntry


class OpamBackend(NativeBackend):
    tool = "opam"

    @property
    def name(self) -> str:
        return "opam"

    def install_dir(self, package_id: str) -> Path:
        return self.install_root / safe_dir_name(package_id)

    def switch_prefix(self, package_id: str) -> Path:
        return self.install_dir(package_id) / "_opam"

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        out = self.query(["show", "-f", "version", package_id], package_id)
        return out.splitlines()[-1].strip().strip('"')

    def fetch_and_place(self, package_id: str, version: str) -> None:
        switch = self.install_dir(package_id)
        if not self.switch_prefix(package_id).is_dir():
            switch.mkdir(parents=True, exist_ok=True)
            self.install_with(
                ["switch", "create", str(switch), "--empty", "--no-switch", "--yes"],
                package_id,
            )
        spec = f"{package_id}.{version}" if version else package_id
        self.install_with(
            ["install", spec, "--switch", str(switch), "--yes", "--no-depexts"],
            package_id,
        )

    def exposed_binaries(self, package_id: str, entry: RegistryEntry | None) -> dict[str, Path]:
        bin_dir = self.switch_prefix(package_id) / "bin"
        return {
            name: bin_dir / name
            for name in self.binary_names(package_id, entry)
            if (bin_dir / name).exists()
        }

    def runtime_env(self, package_id: str) -> RuntimeEnv:
        prefix = self.switch_prefix(package_id)
        return RuntimeEnv(
            variables={"OPAM_SWITCH_PREFIX": str(prefix)},
            prepend={
                "PATH": [str(prefix / "bin")],
                "CAML_LD_LIBRARY_PATH": [str(prefix / "lib" / "stublibs")],
            },
        )

    def uninstall(self, package_id: str) -> None:
        remove_tree(self.install_dir(package_id))
