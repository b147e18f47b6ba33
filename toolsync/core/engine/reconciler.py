"""
Reconciliation engine: converge installed state onto the lockfile.

Flow, per provider:
    ensure install root -> check toolchain -> load desired -> query installed
    -> for each package: resolve -> (skip + repair links) | install

Precondition failures abort the provider before any package is
touched. Package failures are recorded and the loop moves on, so a
single broken package never blocks the rest of a sync.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from toolsync.adapters.base import Backend
from toolsync.adapters.registry import BackendRegistry
from toolsync.core.engine.strategies import InstallStrategySelector
from toolsync.core.errors import ToolsyncError
from toolsync.core.models.outcome import Outcome
from toolsync.core.models.package import DesiredPackage
from toolsync.core.persistence.lockfile import Lockfile
from toolsync.core.persistence.registry_cache import RegistryCache
from toolsync.core.services.versions import VersionResolver

logger = logging.getLogger(__name__)


@dataclass
class PackageResult:
    """Result of reconciling one package."""

    source_id: str
    action: str  # installed, skipped, failed
    version: str = ""
    message: str = ""
    outcomes: list[Outcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.action != "failed"

    @property
    def warnings(self) -> list[str]:
        return [o.message for o in self.outcomes if o.status == "warning"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "action": self.action,
            "version": self.version,
            "message": self.message,
            "warnings": self.warnings,
        }


@dataclass
class SyncReport:
    """Aggregate result of one or more provider syncs."""

    providers: list[str] = field(default_factory=list)
    results: list[PackageResult] = field(default_factory=list)
    fatal_errors: dict[str, str] = field(default_factory=dict)

    @property
    def installed(self) -> int:
        return sum(1 for r in self.results if r.action == "installed")

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.action == "skipped")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.action == "failed")

    @property
    def all_ok(self) -> bool:
        return not self.fatal_errors and self.failed == 0

    @property
    def status(self) -> str:
        if self.all_ok:
            return "ok"
        if self.installed or self.skipped:
            return "partial"
        return "failed"

    def merge(self, other: SyncReport) -> None:
        self.providers.extend(other.providers)
        self.results.extend(other.results)
        self.fatal_errors.update(other.fatal_errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "providers": self.providers,
            "installed": self.installed,
            "skipped": self.skipped,
            "failed": self.failed,
            "fatal_errors": self.fatal_errors,
            "packages": [r.to_dict() for r in self.results],
        }


class ReconciliationEngine:
    """Drives installs for desired packages, one provider at a time."""

    def __init__(
        self,
        backends: BackendRegistry,
        lockfile: Lockfile,
        registry: RegistryCache,
        resolver: VersionResolver,
        selector: InstallStrategySelector,
    ):
        self.backends = backends
        self.lockfile = lockfile
        self.registry = registry
        self.resolver = resolver
        self.selector = selector

    # ── Sync ────────────────────────────────────────────────────

    def sync(self, provider: str) -> SyncReport:
        """Reconcile every lockfile package of one provider."""
        report = SyncReport(providers=[provider])
        backend = self.backends.get(provider)
        if backend is None:
            report.fatal_errors[provider] = f"Unknown provider '{provider}'"
            logger.error(report.fatal_errors[provider])
            return report

        try:
            backend.install_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            report.fatal_errors[provider] = f"Cannot create {backend.install_root}: {e}"
            logger.error(report.fatal_errors[provider])
            return report

        if backend.requires_tool and not backend.is_available():
            report.fatal_errors[provider] = f"{provider} toolchain is not installed"
            logger.error("Skipping %s sync: %s", provider, report.fatal_errors[provider])
            return report

        desired = self.lockfile.packages_for(provider)
        if not desired:
            logger.info("No %s packages to sync", provider)
            return report

        installed = self._installed(backend, desired)
        for pkg in desired:
            result = self.reconcile(backend, pkg, installed.get(pkg.ref.package_id))
            report.results.append(result)

        logger.info(
            "%s sync: %d installed, %d up to date, %d failed",
            provider, report.installed, report.skipped, report.failed,
        )
        return report

    def sync_all(self, providers: list[str] | None = None) -> SyncReport:
        """Sync every provider that has lockfile entries."""
        report = SyncReport()
        for provider in providers if providers is not None else self.lockfile.providers():
            report.merge(self.sync(provider))
        return report

    def _installed(self, backend: Backend, desired: list[DesiredPackage]) -> dict[str, str]:
        try:
            return backend.installed_versions([p.ref.package_id for p in desired])
        except (ToolsyncError, OSError) as e:
            logger.warning("Cannot query installed %s packages: %s", backend.name, e)
            return {}

    # ── One package ─────────────────────────────────────────────

    def reconcile(
        self,
        backend: Backend,
        pkg: DesiredPackage,
        installed_version: str | None,
    ) -> PackageResult:
        """Bring one package to its desired version. Never raises."""
        ref = pkg.ref
        entry = self.registry.get(ref.source_id)
        try:
            strategy = self.selector.select(backend, entry)
        except ToolsyncError as e:
            logger.error("%s: %s", ref, e)
            return PackageResult(ref.source_id, "failed", message=str(e))

        requested = pkg.requested_version
        if installed_version or not strategy.resolves_after_fetch:
            try:
                requested = self.resolver.resolve(
                    ref, pkg.requested_version, entry,
                    prefer_registry=strategy.prefers_registry_version,
                )
            except ToolsyncError as e:
                logger.error("%s: %s", ref, e)
                return PackageResult(ref.source_id, "failed", message=str(e))

        if installed_version and requested == installed_version:
            return self._keep(strategy, pkg, installed_version, entry)

        report = strategy.install(ref, requested, entry)
        if not report.ok:
            return PackageResult(
                ref.source_id, "failed", version=report.version,
                message=report.error or "install failed", outcomes=report.outcomes,
            )
        return PackageResult(
            ref.source_id, "installed", version=report.version,
            message=f"installed {report.version}", outcomes=report.outcomes,
        )

    def _keep(self, strategy, pkg: DesiredPackage, version: str, entry) -> PackageResult:
        """Already at the right version: repair links, pin the lockfile."""
        ref = pkg.ref
        outcomes = strategy.expose_installed(ref, entry)
        if pkg.requested_version != version or ref.raw_source_id != ref.source_id:
            try:
                self.lockfile.add(ref.source_id, version)
            except ToolsyncError as e:
                logger.error("%s: %s", ref, e)
                return PackageResult(ref.source_id, "failed", version=version, message=str(e), outcomes=outcomes)
        logger.debug("%s is up to date (%s)", ref, version)
        return PackageResult(ref.source_id, "skipped", version=version, message="up to date", outcomes=outcomes)
