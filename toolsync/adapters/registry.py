"""
Backend registry: provider name -> backend instance.

The single point of backend management. Registration, lookup and
availability reporting all go through here; nothing else keeps its
own provider table.
"""

from __future__ import annotations

import logging
from pathlib import Path

from toolsync.adapters.base import Backend
from toolsync.adapters.generic import GenericBackend
from toolsync.adapters.languages.dotnet import NugetBackend
from toolsync.adapters.languages.go import GolangBackend
from toolsync.adapters.languages.lua import LuarocksBackend
from toolsync.adapters.languages.node import NpmBackend
from toolsync.adapters.languages.ocaml import OpamBackend
from toolsync.adapters.languages.php import ComposerBackend
from toolsync.adapters.languages.python import PypiBackend
from toolsync.adapters.languages.ruby import GemBackend
from toolsync.adapters.languages.rust import CargoBackend
from toolsync.adapters.net.http import HttpClient
from toolsync.adapters.shell.command import ShellExecutor
from toolsync.adapters.vcs.hosts import CodebergBackend, GitHubBackend, GitLabBackend

logger = logging.getLogger(__name__)

_NATIVE = (
    NpmBackend,
    PypiBackend,
    GolangBackend,
    CargoBackend,
    GemBackend,
    ComposerBackend,
    LuarocksBackend,
    NugetBackend,
    OpamBackend,
)
_GIT_HOSTS = (GitHubBackend, GitLabBackend, CodebergBackend)


class BackendRegistry:
    """Registry of backends keyed by provider name."""

    def __init__(self) -> None:
        self._backends: dict[str, Backend] = {}

    def register(self, backend: Backend) -> None:
        name = backend.name
        if name in self._backends:
            logger.warning("Overwriting existing backend: %s", name)
        self._backends[name] = backend
        logger.debug("Registered backend: %s", name)

    def get(self, name: str) -> Backend | None:
        return self._backends.get(name)

    def list_backends(self) -> list[str]:
        return list(self._backends.keys())


def default_backends(
    packages_dir: Path,
    executor: ShellExecutor | None = None,
    http: HttpClient | None = None,
) -> BackendRegistry:
    """Registry populated with every supported provider."""
    executor = executor or ShellExecutor()
    http = http or HttpClient()
    registry = BackendRegistry()
    for cls in _NATIVE:
        registry.register(cls(packages_dir, executor))
    for host in _GIT_HOSTS:
        registry.register(host(packages_dir, executor, http))
    registry.register(GenericBackend(packages_dir, executor))
    return registry
