"""
Version resolution: "latest" (or nothing) -> one concrete version.
"""

from __future__ import annotations

import logging

from toolsync.adapters.registry import BackendRegistry
from toolsync.core.errors import BackendUnavailableError, ToolsyncError, VersionResolutionError
from toolsync.core.models.package import LATEST, PackageReference
from toolsync.core.models.registry import RegistryEntry

logger = logging.getLogger(__name__)


def is_concrete(version: str) -> bool:
    return bool(version) and version != LATEST


def _semver(version: str) -> tuple[int, ...]:
    parts = tuple(int(x) for x in version.lstrip("v").split(".")[:3])
    return parts + (0,) * (3 - len(parts))


def has_update(current: str, latest: str) -> bool:
    """Whether ``latest`` is newer than ``current`` (major.minor.patch).

    A current version of "latest" or nothing always has an update to a
    concrete ``latest``. Versions that do not parse never do.
    """
    if not is_concrete(latest):
        return False
    if not is_concrete(current):
        return True
    try:
        return _semver(latest) > _semver(current)
    except ValueError:
        return False


class VersionResolver:
    """Pins version requests through the provider's backend."""

    def __init__(self, backends: BackendRegistry):
        self._backends = backends

    def resolve(
        self,
        ref: PackageReference,
        requested: str = "",
        entry: RegistryEntry | None = None,
        prefer_registry: bool = False,
    ) -> str:
        """Concrete version for ``requested``.

        A concrete request is returned untouched, without contacting the
        backend. Otherwise the registry's declared version is used when
        ``prefer_registry`` is set (release assets are published for that
        version), then the backend's own "latest" lookup.

        Raises:
            VersionResolutionError: no usable version could be found.
            BackendUnavailableError: the backend's tool is missing.
        """
        if is_concrete(requested):
            return requested

        if prefer_registry and entry is not None and is_concrete(entry.version):
            logger.debug("%s: using registry version %s", ref, entry.version)
            return entry.version

        backend = self._backends.get(ref.provider)
        if backend is None:
            raise VersionResolutionError(f"No backend registered for provider '{ref.provider}'")

        try:
            version = backend.resolve_latest(ref.package_id, entry).strip()
        except (VersionResolutionError, BackendUnavailableError):
            raise
        except ToolsyncError as e:
            raise VersionResolutionError(f"Cannot resolve latest {ref}: {e}") from e

        if not is_concrete(version):
            raise VersionResolutionError(f"Backend returned no usable version for {ref}")
        logger.debug("%s: latest is %s", ref, version)
        return version
