"""
Install strategies: the fixed pipelines that put a package on disk.

    Idle -> VersionResolving -> Fetching -> Placing -> Exposing -> Recorded
                               (any stage) -> Failed

Three strategies share the pipeline and differ only in how they fetch
and place:

    release  download a per-platform asset, extract, copy binaries
    git      clone or fetch, then check out a tag or branch
    native   hand the whole install to the ecosystem's own tool

Only a pipeline that reaches Recorded writes the lockfile. Exposure
problems are downgraded to warnings; anything else fails the package.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import urllib.parse
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar

from toolsync.adapters.base import VERSION_MARKER, Backend, safe_dir_name
from toolsync.adapters.net.http import HttpClient
from toolsync.adapters.shell.filesystem import (
    extract_archive,
    find_file,
    is_executable,
    place_binary,
    remove_tree,
    replace_tree,
)
from toolsync.adapters.vcs.hosts import GitHostBackend
from toolsync.core.errors import (
    BackendUnavailableError,
    ExposureError,
    ExtractError,
    FetchError,
    PlacementError,
    ToolsyncError,
)
from toolsync.core.models.exposure import RuntimeEnv
from toolsync.core.models.outcome import Outcome, Stage
from toolsync.core.models.package import PackageReference
from toolsync.core.models.registry import AssetDescriptor, RegistryEntry
from toolsync.core.persistence.lockfile import Lockfile
from toolsync.core.services.assets import (
    detect_target,
    match_asset,
    resolve_bin_path,
    resolve_template,
    split_asset_file,
)
from toolsync.core.services.exposure import ExposureManager
from toolsync.core.services.versions import VersionResolver, is_concrete

logger = logging.getLogger(__name__)

# Checked in order; the first executable in each is exposed
GIT_BINARY_LOCATIONS = ("bin", "target/release", "dist", ".")


@dataclass
class InstallReport:
    """What happened to one package during one install attempt."""

    ref: PackageReference
    strategy: str
    version: str = ""
    stage: Stage = Stage.IDLE
    outcomes: list[Outcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.stage == Stage.RECORDED

    @property
    def exposed(self) -> list[str]:
        return [o.metadata["name"] for o in self.outcomes if o.ok and "name" in o.metadata]

    @property
    def warnings(self) -> list[Outcome]:
        return [o for o in self.outcomes if o.status == "warning"]

    @property
    def error(self) -> str | None:
        for outcome in self.outcomes:
            if outcome.failed:
                return outcome.message
        return None

    def advance(self, stage: Stage) -> None:
        logger.debug("%s: %s -> %s", self.ref, self.stage.value, stage.value)
        self.stage = stage

    def fail(self, error: ToolsyncError) -> None:
        self.outcomes.append(Outcome.from_error(self.ref.source_id, self.stage, error))
        logger.error("%s failed while %s: %s", self.ref, self.stage.value, error)
        self.stage = Stage.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_id": self.ref.source_id,
            "strategy": self.strategy,
            "version": self.version,
            "stage": self.stage.value,
            "ok": self.ok,
            "exposed": self.exposed,
            "error": self.error,
            "warnings": [w.message for w in self.warnings],
        }


class InstallStrategy(ABC):
    """Shared pipeline driver. Subclasses fill in fetch/place and discovery."""

    name: ClassVar[str] = ""
    # Git has to clone before it can know which tags exist
    resolves_after_fetch: ClassVar[bool] = False
    prefers_registry_version: ClassVar[bool] = False

    def __init__(
        self,
        backend: Backend,
        resolver: VersionResolver,
        exposure: ExposureManager,
        lockfile: Lockfile,
    ):
        self.backend = backend
        self.resolver = resolver
        self.exposure = exposure
        self.lockfile = lockfile

    # ── Pipeline ────────────────────────────────────────────────

    def install(
        self,
        ref: PackageReference,
        requested: str = "",
        entry: RegistryEntry | None = None,
    ) -> InstallReport:
        """Run the full pipeline. Never raises for package-level failures."""
        report = InstallReport(ref=ref, strategy=self.name)
        try:
            self.check_preconditions()
            self.fetch_and_place(report, ref, requested, entry)
            report.advance(Stage.EXPOSING)
            report.outcomes.extend(self.expose_installed(ref, entry))
            self.lockfile.add(ref.source_id, report.version)
            report.advance(Stage.RECORDED)
            report.outcomes.append(
                Outcome.success(ref.source_id, Stage.RECORDED, f"installed {report.version}")
            )
        except ToolsyncError as e:
            report.fail(e)
        return report

    def check_preconditions(self) -> None:
        """Raise before anything touches the disk."""

    @abstractmethod
    def fetch_and_place(
        self,
        report: InstallReport,
        ref: PackageReference,
        requested: str,
        entry: RegistryEntry | None,
    ) -> None:
        """Resolve, fetch and place; must set ``report.version``."""

    # ── Exposure ────────────────────────────────────────────────

    @abstractmethod
    def binaries(self, ref: PackageReference, entry: RegistryEntry | None) -> dict[str, Path]:
        """Exposed name -> installed executable, for an installed package."""

    def runtime_env(self, ref: PackageReference) -> RuntimeEnv | None:
        return None

    def owner_dir(self, ref: PackageReference) -> Path:
        return self.backend.install_dir(ref.package_id)

    def expose_installed(self, ref: PackageReference, entry: RegistryEntry | None) -> list[Outcome]:
        """Create or repair every exposure entry of an installed package.

        Failures come back as warning outcomes, never as exceptions.
        """
        try:
            found = self.binaries(ref, entry)
        except (ToolsyncError, OSError) as e:
            return [Outcome.warning(ref.source_id, Stage.EXPOSING, f"Cannot list binaries: {e}")]

        if not found:
            logger.warning("%s: no executables found to expose", ref)
            return [Outcome.warning(ref.source_id, Stage.EXPOSING, "no executables found to expose")]

        env = self.runtime_env(ref)
        owner = self.owner_dir(ref)
        outcomes = []
        for name, target in found.items():
            try:
                self.exposure.expose(name, target, runtime_env=env, owner_dir=owner)
            except ExposureError as e:
                logger.warning("%s: %s", ref, e)
                outcomes.append(Outcome.from_error(ref.source_id, Stage.EXPOSING, e))
                continue
            outcomes.append(
                Outcome.success(ref.source_id, Stage.EXPOSING, f"exposed {name}", metadata={"name": name})
            )
        return outcomes

    # ── Removal ─────────────────────────────────────────────────

    def remove(self, ref: PackageReference, entry: RegistryEntry | None) -> list[Outcome]:
        """Unexpose and delete a package's own install directory."""
        install_dir = self.backend.install_dir(ref.package_id)
        outcomes = []
        try:
            for name in self.exposure.unexpose_all_under(install_dir):
                outcomes.append(Outcome.success(ref.source_id, Stage.EXPOSING, f"unexposed {name}"))
        except ExposureError as e:
            outcomes.append(Outcome.from_error(ref.source_id, Stage.EXPOSING, e))
        try:
            remove_tree(install_dir)
            outcomes.append(Outcome.success(ref.source_id, Stage.PLACING, f"removed {install_dir}"))
        except PlacementError as e:
            outcomes.append(Outcome.from_error(ref.source_id, Stage.PLACING, e))
        return outcomes


# ── Release assets ──────────────────────────────────────────────


class ReleaseAssetStrategy(InstallStrategy):
    """Download the asset matching this platform and copy out its binaries."""

    name = "release"
    prefers_registry_version = True

    def __init__(
        self,
        backend: Backend,
        resolver: VersionResolver,
        exposure: ExposureManager,
        lockfile: Lockfile,
        http: HttpClient,
        target: str | None = None,
    ):
        super().__init__(backend, resolver, exposure, lockfile)
        self.http = http
        self.target = target or detect_target()

    def _asset(
        self, ref: PackageReference, entry: RegistryEntry | None
    ) -> tuple[RegistryEntry, AssetDescriptor]:
        """The entry and its asset for this platform.

        Raises:
            FetchError: no entry, no assets, or none built for this target.
        """
        if entry is None or not entry.has_assets:
            raise FetchError(f"{ref} declares no release assets")
        asset = match_asset(entry.source.assets, self.target)
        if asset is None:
            raise FetchError(f"No release asset of {ref} matches platform {self.target}")
        return entry, asset

    def fetch_and_place(self, report, ref, requested, entry) -> None:
        report.advance(Stage.VERSION_RESOLVING)
        version = self.resolver.resolve(ref, requested, entry, prefer_registry=True)
        report.version = version
        entry, asset = self._asset(ref, entry)

        file_name, subdir = split_asset_file(resolve_template(asset.file, version))
        url = self.backend.asset_url(ref.package_id, version, file_name)

        install_dir = self.backend.install_dir(ref.package_id)
        try:
            install_dir.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PlacementError(f"Cannot create {install_dir.parent}: {e}") from e

        prefix = f".{safe_dir_name(ref.package_id)}-"
        with tempfile.TemporaryDirectory(prefix=prefix, dir=install_dir.parent) as tmp:
            workdir = Path(tmp)
            report.advance(Stage.FETCHING)
            download_name = Path(urllib.parse.urlparse(url).path).name or "asset"
            archive = self.http.download(url, workdir / download_name)

            report.advance(Stage.PLACING)
            extracted = extract_archive(archive, workdir / "extracted")
            source_root = extracted / subdir if subdir else extracted
            if not source_root.is_dir():
                raise ExtractError(f"'{subdir}' not found inside {download_name}")

            staged = workdir / "staged"
            self._stage(ref, entry, asset, version, source_root, staged)
            try:
                (staged / VERSION_MARKER).write_text(version + "\n", encoding="utf-8")
            except OSError as e:
                raise PlacementError(f"Cannot write version marker: {e}") from e
            replace_tree(staged, install_dir)

    def _stage(
        self,
        ref: PackageReference,
        entry: RegistryEntry,
        asset: AssetDescriptor,
        version: str,
        source_root: Path,
        staged: Path,
    ) -> None:
        if not entry.bin:
            try:
                shutil.copytree(source_root, staged)
            except OSError as e:
                raise PlacementError(f"Cannot copy {ref} into place: {e}") from e
            return

        staged.mkdir(parents=True, exist_ok=True)
        missing = []
        for name, template in entry.bin.items():
            rel = resolve_bin_path(template, asset, name, version)
            candidate = source_root / rel
            if not candidate.is_file():
                candidate = find_file(source_root, Path(rel).name)
            if candidate is None:
                missing.append(name)
                continue
            place_binary(candidate, staged, Path(rel).name)

        if len(missing) == len(entry.bin):
            raise PlacementError(f"None of the binaries of {ref} were found in the asset: {', '.join(missing)}")
        if missing:
            logger.warning("%s: binaries not found in asset: %s", ref, ", ".join(missing))

    def binaries(self, ref, entry) -> dict[str, Path]:
        install_dir = self.backend.install_dir(ref.package_id)
        if entry is None or not entry.bin:
            return {}
        _, asset = self._asset(ref, entry)
        marker = install_dir / VERSION_MARKER
        version = marker.read_text(encoding="utf-8").strip() if marker.is_file() else ""
        found = {}
        for name, template in entry.bin.items():
            placed = install_dir / Path(resolve_bin_path(template, asset, name, version)).name
            if placed.is_file():
                found[name] = placed
        return found


# ── Git ─────────────────────────────────────────────────────────


class GitStrategy(InstallStrategy):
    """Clone (or fetch) a repository and check out a tag or branch."""

    name = "git"
    resolves_after_fetch = True
    backend: GitHostBackend

    def check_preconditions(self) -> None:
        if not self.backend.git.is_available():
            raise BackendUnavailableError("git is not installed; cannot install from source")

    def fetch_and_place(self, report, ref, requested, entry) -> None:
        git = self.backend.git
        repo = self.backend.install_dir(ref.package_id)

        report.advance(Stage.FETCHING)
        git.clone_or_fetch(self.backend.repo_url(ref.package_id), repo)

        report.advance(Stage.VERSION_RESOLVING)
        if is_concrete(requested):
            version = requested
        else:
            version = git.latest_tag(repo) or git.default_branch(repo)
        report.version = version

        report.advance(Stage.PLACING)
        git.checkout(repo, version)

    def binaries(self, ref, entry) -> dict[str, Path]:
        repo = self.backend.install_dir(ref.package_id)
        found: dict[str, Path] = {}
        for location in GIT_BINARY_LOCATIONS:
            directory = repo / location
            if not directory.is_dir():
                continue
            for candidate in sorted(directory.iterdir()):
                if candidate.name.startswith(".") or candidate.is_dir():
                    continue
                if is_executable(candidate):
                    found.setdefault(candidate.name, candidate)
                    break
        return found


# ── Native package managers ─────────────────────────────────────


class NativeStrategy(InstallStrategy):
    """Delegate fetch and place to the ecosystem's installer."""

    name = "native"

    def check_preconditions(self) -> None:
        if not self.backend.is_available():
            raise BackendUnavailableError(f"{self.backend.name} toolchain is not installed")

    def fetch_and_place(self, report, ref, requested, entry) -> None:
        report.advance(Stage.VERSION_RESOLVING)
        version = self.resolver.resolve(ref, requested, entry)
        report.version = version

        report.advance(Stage.FETCHING)
        try:
            self.backend.install_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PlacementError(f"Cannot create {self.backend.install_root}: {e}") from e
        self.backend.fetch_and_place(ref.package_id, version)

        report.advance(Stage.PLACING)
        try:
            self.backend.record_version(ref.package_id, version)
        except OSError as e:
            raise PlacementError(f"Cannot record installed version of {ref}: {e}") from e

    def binaries(self, ref, entry) -> dict[str, Path]:
        return self.backend.exposed_binaries(ref.package_id, entry)

    def runtime_env(self, ref: PackageReference) -> RuntimeEnv | None:
        return self.backend.runtime_env(ref.package_id)

    def owner_dir(self, ref: PackageReference) -> Path:
        return self.backend.package_dir(ref.package_id) or self.backend.install_root

    def _owned_binaries(self, ref: PackageReference, entry: RegistryEntry | None) -> dict[str, Path]:
        """Binaries backed by this package's installed files; empty if not installed."""
        try:
            if ref.package_id not in self.backend.installed_versions([ref.package_id]):
                return {}
            return self.binaries(ref, entry)
        except (ToolsyncError, OSError) as e:
            logger.warning("%s: cannot list installed binaries: %s", ref, e)
            return {}

    def remove(self, ref: PackageReference, entry: RegistryEntry | None) -> list[Outcome]:
        """Unexpose only entries that point at this package's own files.

        Native packages may share a root, so a name alone proves nothing:
        the entry must still target one of the package's binaries, or lie
        under its own directory when it has one.
        """
        outcomes = []
        found = self._owned_binaries(ref, entry)
        names = [name for name, target in sorted(found.items()) if self.exposure.is_exposed(name, target)]
        for name in names:
            try:
                if self.exposure.unexpose(name):
                    outcomes.append(Outcome.success(ref.source_id, Stage.EXPOSING, f"unexposed {name}"))
            except ExposureError as e:
                outcomes.append(Outcome.from_error(ref.source_id, Stage.EXPOSING, e))

        own_dir = self.backend.package_dir(ref.package_id)
        if own_dir is not None:
            try:
                for name in self.exposure.unexpose_all_under(own_dir):
                    outcomes.append(Outcome.success(ref.source_id, Stage.EXPOSING, f"unexposed {name}"))
            except ExposureError as e:
                outcomes.append(Outcome.from_error(ref.source_id, Stage.EXPOSING, e))

        try:
            self.backend.uninstall(ref.package_id)
            self.backend.forget_version(ref.package_id)
            outcomes.append(Outcome.success(ref.source_id, Stage.PLACING, "uninstalled"))
        except ToolsyncError as e:
            outcomes.append(Outcome.from_error(ref.source_id, Stage.PLACING, e))
        except OSError as e:
            outcomes.append(
                Outcome.from_error(ref.source_id, Stage.PLACING, PlacementError(str(e)))
            )
        return outcomes


# ── Selection ───────────────────────────────────────────────────


class InstallStrategySelector:
    """Picks the pipeline for one package.

    1. registry entry with assets (and a backend that hosts them) -> release
    2. git-host provider                                          -> git
    3. anything else with a native installer                      -> native
    """

    def __init__(
        self,
        resolver: VersionResolver,
        exposure: ExposureManager,
        lockfile: Lockfile,
        http: HttpClient | None = None,
        target: str | None = None,
    ):
        self.resolver = resolver
        self.exposure = exposure
        self.lockfile = lockfile
        self.http = http or HttpClient()
        self.target = target

    def select(self, backend: Backend, entry: RegistryEntry | None) -> InstallStrategy:
        """
        Raises:
            FetchError: the provider can only install release assets and
                the entry declares none.
        """
        deps = (backend, self.resolver, self.exposure, self.lockfile)
        if entry is not None and entry.has_assets and backend.supports_release_assets():
            return ReleaseAssetStrategy(*deps, http=self.http, target=self.target)
        if isinstance(backend, GitHostBackend):
            return GitStrategy(*deps)
        if backend.kind == "native":
            return NativeStrategy(*deps)
        raise FetchError(f"No install strategy for {backend.name}: registry entry has no release assets")
