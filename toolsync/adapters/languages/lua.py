"""
LuaRocks backend: rocks installed into a private tree.
"""

from __future__ import annotations

from collections.abc import Iterable

from toolsync.adapters.base import NativeBackend
from toolsync.core.errors import PlacementError, VersionResolutionError
from toolsync.core.models.exposure import RuntimeEnv
from toolsync.core.models.registry import RegistryEntry

_SOURCE_ARCHES = ("src", "rockspec", "all")


class LuarocksBackend(NativeBackend):
    tool = "luarocks"

    @property
    def name(self) -> str:
        return "luarocks"

    def _tree(self) -> list[str]:
        return ["--tree", str(self.install_root)]

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        out = self.query(["search", "--porcelain", package_id], package_id)
        # name <TAB> version <TAB> arch <TAB> server; newest first
        for line in out.splitlines():
            fields = line.split("\t")
            if len(fields) >= 3 and fields[0] == package_id and fields[2] in _SOURCE_ARCHES:
                return fields[1]
        raise VersionResolutionError(f"luarocks search found no rock named {package_id}")

    def fetch_and_place(self, package_id: str, version: str) -> None:
        args = ["install", *self._tree(), package_id]
        if version:
            args.append(version)
        self.install_with(args, package_id)

    def installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        result = self.run_tool(["list", "--porcelain", *self._tree()], capture=True)
        if not result.ok:
            return {}
        installed = {}
        for line in result.stdout.splitlines():
            fields = line.split("\t")
            if len(fields) >= 2:
                installed.setdefault(fields[0], fields[1])
        return {pid: installed[pid] for pid in package_ids if pid in installed}

    def runtime_env(self, package_id: str) -> RuntimeEnv:
        root = self.install_root
        lua_path = [f"{d}/?.lua;{d}/?/init.lua" for d in sorted((root / "share" / "lua").glob("*"))]
        lua_cpath = [f"{d}/?.so" for d in sorted((root / "lib" / "lua").glob("*"))]
        variables = {}
        # A trailing ";;" keeps Lua's built-in search path
        if lua_path:
            variables["LUA_PATH"] = ";".join(lua_path) + ";;"
        if lua_cpath:
            variables["LUA_CPATH"] = ";".join(lua_cpath) + ";;"
        return RuntimeEnv(variables=variables, prepend={"PATH": [str(self.bin_dir())]})

    def uninstall(self, package_id: str) -> None:
        result = self.run_tool(["remove", *self._tree(), package_id])
        if not result.ok:
            raise PlacementError(f"luarocks remove {package_id} failed: {result.describe_failure()}")
