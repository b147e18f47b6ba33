"""
Package use cases: install, remove, update, list and info, for the CLI.

Each function takes the application context and returns a result
object with ``to_dict()``; none of them raise for per-package
problems.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from toolsync.core.context import AppContext
from toolsync.core.engine.dispatcher import Provider
from toolsync.core.engine.reconciler import PackageResult
from toolsync.core.errors import InvalidIdentifierError, ToolsyncError
from toolsync.core.models.package import PackageReference
from toolsync.core.models.registry import RegistryEntry
from toolsync.core.services.source_id import normalize, parse_reference, split_version
from toolsync.core.services.versions import has_update
from toolsync.core.use_cases.registry import ensure_registry

logger = logging.getLogger(__name__)


@dataclass
class PackageOpResult:
    """One package's line in a batch result."""

    source_id: str
    ok: bool
    version: str = ""
    message: str = ""
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "ok": self.ok,
            "version": self.version,
            "message": self.message,
            "warnings": self.warnings,
        }


@dataclass
class BatchResult:
    """Result of applying one operation to several packages."""

    operation: str
    items: list[PackageOpResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for i in self.items if i.ok)

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if not i.ok)

    @property
    def all_ok(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "packages": [i.to_dict() for i in self.items],
        }


# ── Install / remove / update ───────────────────────────────────


def _plan(ctx: AppContext, source_ids: list[str]) -> list[tuple[str, Provider | None, str]]:
    """(id, provider, rejection message) for each id, in order.

    Runs before anything touches the disk or the network, so a batch of
    invalid ids has no side effects.
    """
    planned: list[tuple[str, Provider | None, str]] = []
    for source_id in source_ids:
        try:
            planned.append((source_id, ctx.dispatcher.provider_for(source_id), ""))
        except InvalidIdentifierError as e:
            logger.error("%s", e)
            planned.append((source_id, None, str(e)))
    return planned


def install_packages(ctx: AppContext, specs: list[str]) -> BatchResult:
    """Install each ``id[@version]`` argument."""
    result = BatchResult(operation="install")
    split = [split_version(spec) for spec in specs]
    planned = _plan(ctx, [source_id for source_id, _ in split])
    if any(provider for _, provider, _ in planned):
        ensure_registry(ctx.settings, ctx.registry, ctx.http)

    for (source_id, provider, rejection), (_, version) in zip(planned, split):
        if provider is None:
            result.items.append(PackageOpResult(source_id, False, message=rejection))
            continue
        report = provider.install_report(source_id, version)
        result.items.append(
            PackageOpResult(
                report.ref.source_id,
                report.ok,
                version=report.version,
                message=f"installed {report.version}" if report.ok else (report.error or "install failed"),
                warnings=[w.message for w in report.warnings],
            )
        )
    return result


def remove_packages(ctx: AppContext, source_ids: list[str]) -> BatchResult:
    result = BatchResult(operation="remove")
    for source_id, provider, rejection in _plan(ctx, source_ids):
        if provider is None:
            result.items.append(PackageOpResult(source_id, False, message=rejection))
            continue
        errors = [o.message for o in provider.remove_outcomes(source_id) if o.failed]
        result.items.append(
            PackageOpResult(
                parse_reference(source_id).source_id,
                not errors,
                message="; ".join(errors) if errors else "removed",
            )
        )
    return result


def update_packages(ctx: AppContext, source_ids: list[str], update_all: bool = False) -> BatchResult:
    """Move packages (or every lockfile package) to their latest version."""
    result = BatchResult(operation="update")
    if update_all:
        if ctx.lockfile.entries():
            ensure_registry(ctx.settings, ctx.registry, ctx.http)
        for pr in ctx.dispatcher.update_all_report():
            result.items.append(_update_item(pr))
        return result

    planned = _plan(ctx, source_ids)
    if any(provider for _, provider, _ in planned):
        ensure_registry(ctx.settings, ctx.registry, ctx.http)
    for source_id, provider, rejection in planned:
        if provider is None:
            result.items.append(PackageOpResult(source_id, False, message=rejection))
            continue
        try:
            result.items.append(_update_item(provider.update_result(source_id)))
        except InvalidIdentifierError as e:
            logger.error("%s", e)
            result.items.append(PackageOpResult(source_id, False, message=str(e)))
    return result


def _update_item(pr: PackageResult) -> PackageOpResult:
    return PackageOpResult(pr.source_id, pr.ok, version=pr.version, message=pr.message, warnings=pr.warnings)


# ── Listing ─────────────────────────────────────────────────────


@dataclass
class ListedPackage:
    source_id: str
    name: str
    requested: str = ""
    installed: str = ""
    latest: str = ""
    description: str = ""

    @property
    def update_available(self) -> bool:
        if not self.requested:
            return False
        return has_update(self.installed or self.requested, self.latest)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.source_id,
            "name": self.name,
            "requested": self.requested,
            "installed": self.installed,
            "latest": self.latest,
            "update_available": self.update_available,
            "description": self.description,
        }


@dataclass
class ListResult:
    packages: list[ListedPackage] = field(default_factory=list)

    @property
    def updates(self) -> int:
        return sum(1 for p in self.packages if p.update_available)

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": len(self.packages),
            "updates_available": self.updates,
            "packages": [p.to_dict() for p in self.packages],
        }


def _installed_version(ctx: AppContext, ref: PackageReference) -> str:
    backend = ctx.backends.get(ref.provider)
    if backend is None:
        return ""
    try:
        return backend.installed_versions([ref.package_id]).get(ref.package_id, "")
    except (ToolsyncError, OSError) as e:
        logger.debug("Cannot read installed version of %s: %s", ref, e)
        return ""


def _matches(pkg: ListedPackage, filters: list[str]) -> bool:
    """Case-insensitive prefix match on the source id or the package name."""
    if not filters:
        return True
    package_id = pkg.source_id.split(":", 1)[-1].lower()
    candidates = (pkg.source_id.lower(), pkg.name.lower(), package_id)
    return any(c.startswith(f.lower()) for f in filters for c in candidates)


def list_packages(
    ctx: AppContext,
    include_available: bool = False,
    filters: list[str] | None = None,
) -> ListResult:
    """Lockfile packages with their installed versions.

    With ``include_available``, every registry entry is listed and
    lockfile packages are marked with their versions. ``filters`` keeps
    only packages whose id or name starts with one of them.
    """
    installed: dict[str, str] = {}
    requested: dict[str, str] = {}

    for entry in ctx.lockfile.entries():
        try:
            ref = parse_reference(entry.source_id)
        except InvalidIdentifierError as e:
            logger.warning("Skipping lockfile entry %r: %s", entry.source_id, e)
            continue
        requested[ref.source_id] = entry.version
        installed[ref.source_id] = _installed_version(ctx, ref)

    packages = []
    if include_available:
        for reg_entry in ctx.registry.entries():
            sid = normalize(reg_entry.source_id)
            packages.append(
                ListedPackage(
                    sid, reg_entry.name,
                    requested=requested.get(sid, ""),
                    installed=installed.get(sid, ""),
                    latest=reg_entry.version,
                    description=reg_entry.description,
                )
            )
    else:
        for sid, version in requested.items():
            reg_entry = ctx.registry.get(sid)
            packages.append(
                ListedPackage(
                    sid,
                    reg_entry.name if reg_entry else sid.split(":", 1)[1],
                    requested=version,
                    installed=installed.get(sid, ""),
                    latest=reg_entry.version if reg_entry else "",
                    description=reg_entry.description if reg_entry else "",
                )
            )
    return ListResult([p for p in packages if _matches(p, filters or [])])


# ── Info ────────────────────────────────────────────────────────


@dataclass
class PackageInfo:
    """Registry details of one package plus its local state."""

    entry: RegistryEntry
    source_id: str
    requested: str = ""
    installed: str = ""

    @property
    def status(self) -> str:
        return "installed" if self.requested else "not_installed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.entry.name,
            "source_id": self.source_id,
            "provider": self.source_id.split(":", 1)[0],
            "version": self.entry.version,
            "description": self.entry.description,
            "homepage": self.entry.homepage,
            "licenses": self.entry.licenses,
            "languages": self.entry.languages,
            "categories": self.entry.categories,
            "binaries": self.entry.bin,
            "status": self.status,
            "requested": self.requested,
            "installed": self.installed,
        }


@dataclass
class InfoResult:
    packages: list[PackageInfo] = field(default_factory=list)
    missing: dict[str, str] = field(default_factory=dict)

    @property
    def all_found(self) -> bool:
        return not self.missing

    def to_dict(self) -> dict[str, Any]:
        return {
            "packages": [p.to_dict() for p in self.packages],
            "missing": self.missing,
        }


def package_info(ctx: AppContext, source_ids: list[str]) -> InfoResult:
    """Look each id up in the registry.

    Ids that do not parse, or that the registry does not know, end up in
    ``missing`` with the reason.
    """
    result = InfoResult()
    refs = []
    for raw in source_ids:
        try:
            refs.append((raw, parse_reference(split_version(raw)[0])))
        except InvalidIdentifierError as e:
            result.missing[raw] = str(e)
    if refs:
        ensure_registry(ctx.settings, ctx.registry, ctx.http)

    for raw, ref in refs:
        entry = ctx.registry.get(ref.source_id)
        if entry is None:
            result.missing[raw] = f"'{ref.source_id}' not found in registry"
            continue
        lock_entry = ctx.lockfile.get(ref.source_id)
        result.packages.append(
            PackageInfo(
                entry,
                ref.source_id,
                requested=lock_entry.version if lock_entry else "",
                installed=_installed_version(ctx, ref) if lock_entry else "",
            )
        )
    return result
