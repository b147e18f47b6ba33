"""
Provider dispatch: route a source identifier to the provider that owns it.

Each ``Provider`` binds one backend to the shared engine and exposes the
user-level operations (install, remove, update, sync, clean). The
boolean methods are for callers that only need success or failure; the
``*_report`` variants return the full record for display.
"""

from __future__ import annotations

import logging

from toolsync.adapters.base import Backend
from toolsync.adapters.shell.filesystem import remove_tree
from toolsync.core.engine.reconciler import PackageResult, ReconciliationEngine, SyncReport
from toolsync.core.engine.strategies import (
    InstallReport,
    InstallStrategy,
    NativeStrategy,
    ReleaseAssetStrategy,
)
from toolsync.core.errors import (
    ExposureError,
    InvalidIdentifierError,
    PlacementError,
    StateWriteError,
    ToolsyncError,
)
from toolsync.core.models.outcome import Outcome, Stage
from toolsync.core.models.package import LATEST, DesiredPackage, PackageReference
from toolsync.core.services.source_id import parse_reference

logger = logging.getLogger(__name__)


class Provider:
    """User-level operations for the packages of one backend."""

    def __init__(self, backend: Backend, engine: ReconciliationEngine):
        self.backend = backend
        self.engine = engine

    @property
    def name(self) -> str:
        return self.backend.name

    def _ref(self, source_id: str) -> PackageReference:
        ref = parse_reference(source_id)
        if ref.provider != self.name:
            raise InvalidIdentifierError(f"'{source_id}' does not belong to provider {self.name}")
        return ref

    def _removal_strategy(self, entry) -> InstallStrategy:
        sel = self.engine.selector
        deps = (self.backend, sel.resolver, sel.exposure, sel.lockfile)
        if self.backend.kind == "native":
            return NativeStrategy(*deps)
        try:
            return sel.select(self.backend, entry)
        except ToolsyncError:
            # Generic entries without assets still own a plain directory
            return ReleaseAssetStrategy(*deps, http=sel.http, target=sel.target)

    # ── Install ─────────────────────────────────────────────────

    def install_report(self, source_id: str, version: str = "") -> InstallReport:
        """Install one package now and record it in the lockfile.

        Raises:
            InvalidIdentifierError: malformed id or wrong provider.
        """
        ref = self._ref(source_id)
        entry = self.engine.registry.get(ref.source_id)
        try:
            strategy = self.engine.selector.select(self.backend, entry)
        except ToolsyncError as e:
            report = InstallReport(ref=ref, strategy="none")
            report.fail(e)
            return report
        logger.info("Installing %s%s via %s", ref, f"@{version}" if version else "", strategy.name)
        return strategy.install(ref, version, entry)

    def install(self, source_id: str, version: str = "") -> bool:
        try:
            return self.install_report(source_id, version).ok
        except InvalidIdentifierError as e:
            logger.error("%s", e)
            return False

    # ── Remove ──────────────────────────────────────────────────

    def remove_outcomes(self, source_id: str) -> list[Outcome]:
        """Unexpose, uninstall and forget one package.

        Removing something that is not installed is not an error.

        Raises:
            InvalidIdentifierError: malformed id or wrong provider.
        """
        ref = self._ref(source_id)
        entry = self.engine.registry.get(ref.source_id)
        outcomes = self._removal_strategy(entry).remove(ref, entry)
        try:
            if self.engine.lockfile.remove(ref.source_id):
                outcomes.append(Outcome.success(ref.source_id, Stage.RECORDED, "removed from lockfile"))
            else:
                logger.info("%s was not in the lockfile", ref)
        except StateWriteError as e:
            outcomes.append(Outcome.from_error(ref.source_id, Stage.RECORDED, e))
        return outcomes

    def remove(self, source_id: str) -> bool:
        try:
            outcomes = self.remove_outcomes(source_id)
        except InvalidIdentifierError as e:
            logger.error("%s", e)
            return False
        return not any(o.failed for o in outcomes)

    # ── Update ──────────────────────────────────────────────────

    def update_result(self, source_id: str) -> PackageResult:
        """Move an installed package to the latest version.

        Raises:
            InvalidIdentifierError: malformed id, wrong provider, or a
                package that is not in the lockfile.
        """
        ref = self._ref(source_id)
        if self.engine.lockfile.get(ref.source_id) is None:
            raise InvalidIdentifierError(f"{ref} is not installed")
        try:
            installed = self.backend.installed_versions([ref.package_id])
        except (ToolsyncError, OSError) as e:
            logger.warning("Cannot query installed version of %s: %s", ref, e)
            installed = {}
        desired = DesiredPackage(ref=ref, requested_version=LATEST)
        return self.engine.reconcile(self.backend, desired, installed.get(ref.package_id))

    def update(self, source_id: str) -> bool:
        try:
            return self.update_result(source_id).ok
        except InvalidIdentifierError as e:
            logger.error("%s", e)
            return False

    # ── Sync / clean ────────────────────────────────────────────

    def sync_report(self) -> SyncReport:
        return self.engine.sync(self.name)

    def sync(self) -> bool:
        return self.sync_report().all_ok

    def clean(self) -> bool:
        """Wipe this provider's install root and reinstall from the lockfile."""
        root = self.backend.install_root
        try:
            self.engine.selector.exposure.unexpose_all_under(root)
            remove_tree(root)
        except (ExposureError, PlacementError) as e:
            logger.error("Cannot clean %s: %s", self.name, e)
            return False
        logger.info("Cleaned %s, reinstalling", root)
        return self.sync()


class ProviderDispatcher:
    """Maps provider names to ``Provider`` instances."""

    def __init__(self, engine: ReconciliationEngine):
        self.engine = engine
        self._providers: dict[str, Provider] = {}

    def provider(self, name: str) -> Provider:
        """
        Raises:
            InvalidIdentifierError: no backend is registered for ``name``.
        """
        if name not in self._providers:
            backend = self.engine.backends.get(name)
            if backend is None:
                raise InvalidIdentifierError(f"Unknown provider '{name}'")
            self._providers[name] = Provider(backend, self.engine)
        return self._providers[name]

    def provider_for(self, source_id: str) -> Provider:
        """
        Raises:
            InvalidIdentifierError: malformed id or unknown provider.
        """
        return self.provider(parse_reference(source_id).provider)

    def install(self, source_id: str, version: str = "") -> bool:
        try:
            return self.provider_for(source_id).install(source_id, version)
        except InvalidIdentifierError as e:
            logger.error("%s", e)
            return False

    def remove(self, source_id: str) -> bool:
        try:
            return self.provider_for(source_id).remove(source_id)
        except InvalidIdentifierError as e:
            logger.error("%s", e)
            return False

    def update(self, source_id: str) -> bool:
        try:
            return self.provider_for(source_id).update(source_id)
        except InvalidIdentifierError as e:
            logger.error("%s", e)
            return False

    def update_all_report(self) -> list[PackageResult]:
        results = []
        for entry in self.engine.lockfile.entries():
            try:
                results.append(self.provider_for(entry.source_id).update_result(entry.source_id))
            except InvalidIdentifierError as e:
                logger.error("%s", e)
                results.append(PackageResult(entry.source_id, "failed", message=str(e)))
        return results

    def update_all(self) -> bool:
        return all(r.ok for r in self.update_all_report())

    def sync_report(self, provider: str | None = None) -> SyncReport:
        if provider is None:
            return self.engine.sync_all()
        return self.engine.sync(provider)

    def sync(self, provider: str | None = None) -> bool:
        return self.sync_report(provider).all_ok
