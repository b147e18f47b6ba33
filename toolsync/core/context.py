"""
Application context: every long-lived collaborator, built once.

The CLI builds one context per invocation; tests build one around a
temp ``home`` and a ``MockExecutor``.
"""

from __future__ import annotations

from dataclasses import dataclass

from toolsync.adapters.net.http import HttpClient
from toolsync.adapters.registry import BackendRegistry, default_backends
from toolsync.adapters.shell.command import ShellExecutor
from toolsync.core.config.loader import Settings
from toolsync.core.engine.dispatcher import ProviderDispatcher
from toolsync.core.engine.reconciler import ReconciliationEngine
from toolsync.core.engine.strategies import InstallStrategySelector
from toolsync.core.persistence.lockfile import Lockfile
from toolsync.core.persistence.registry_cache import RegistryCache
from toolsync.core.services.exposure import ExposureManager
from toolsync.core.services.versions import VersionResolver


@dataclass
class AppContext:
    settings: Settings
    executor: ShellExecutor
    http: HttpClient
    backends: BackendRegistry
    lockfile: Lockfile
    registry: RegistryCache
    exposure: ExposureManager
    engine: ReconciliationEngine
    dispatcher: ProviderDispatcher


def build_context(
    settings: Settings,
    executor: ShellExecutor | None = None,
    http: HttpClient | None = None,
    backends: BackendRegistry | None = None,
    target: str | None = None,
) -> AppContext:
    """Wire the engine for ``settings``.

    ``target`` overrides platform detection for release assets
    (``linux_x64``, ``darwin_arm64``, ...).
    """
    executor = executor or ShellExecutor()
    http = http or HttpClient(timeout=settings.http_timeout)
    if backends is None:
        backends = default_backends(settings.packages_dir, executor, http)

    lockfile = Lockfile(settings.lockfile_path)
    registry = RegistryCache(settings.registry_path)
    exposure = ExposureManager(settings.bin_dir)
    resolver = VersionResolver(backends)
    selector = InstallStrategySelector(resolver, exposure, lockfile, http=http, target=target)
    engine = ReconciliationEngine(backends, lockfile, registry, resolver, selector)

    return AppContext(
        settings=settings,
        executor=executor,
        http=http,
        backends=backends,
        lockfile=lockfile,
        registry=registry,
        exposure=exposure,
        engine=engine,
        dispatcher=ProviderDispatcher(engine),
    )
