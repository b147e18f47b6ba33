"""
Health checks: which provider toolchains are usable on this machine.

A missing toolchain only degrades the system, since every other
provider keeps working. A probe that blows up is reported unhealthy.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from toolsync.adapters.base import Backend
from toolsync.adapters.registry import BackendRegistry

logger = logging.getLogger(__name__)


@dataclass
class ComponentHealth:
    """Health of a single component."""

    name: str
    status: str = "unknown"  # healthy, degraded, unhealthy, unknown
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class SystemHealth:
    """Aggregate health of every checked component."""

    status: str = "healthy"
    timestamp: str = ""
    components: list[ComponentHealth] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(UTC).isoformat()

    def add(self, component: ComponentHealth) -> None:
        self.components.append(component)
        statuses = [c.status for c in self.components]
        if "unhealthy" in statuses:
            self.status = "unhealthy"
        elif "degraded" in statuses:
            self.status = "degraded"
        elif all(s == "healthy" for s in statuses):
            self.status = "healthy"
        else:
            self.status = "unknown"

    @property
    def available(self) -> list[str]:
        return [c.name for c in self.components if c.status == "healthy"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "available": self.available,
            "components": [c.to_dict() for c in self.components],
        }


def check_backend(backend: Backend) -> ComponentHealth:
    """Probe one backend's toolchain."""
    details = {"kind": backend.kind, "install_root": str(backend.install_root)}
    try:
        available = backend.is_available()
    except Exception as e:
        logger.debug("Health probe for %s raised: %s", backend.name, e)
        return ComponentHealth(backend.name, "unhealthy", f"Probe failed: {e}", details)

    if available:
        return ComponentHealth(backend.name, "healthy", "toolchain available", details)
    if not backend.requires_tool:
        return ComponentHealth(backend.name, "healthy", "release downloads only", details)
    return ComponentHealth(backend.name, "degraded", "toolchain not installed", details)


def check_bin_dir(bin_dir: Path) -> ComponentHealth:
    """Whether the exposure directory exists and is on PATH."""
    on_path = str(bin_dir) in os.environ.get("PATH", "").split(os.pathsep)
    details = {"path": str(bin_dir), "exists": bin_dir.is_dir(), "on_path": on_path}
    if not on_path:
        return ComponentHealth(
            "bin_dir", "degraded", f"{bin_dir} is not on PATH (see 'toolsync env')", details,
        )
    return ComponentHealth("bin_dir", "healthy", "on PATH", details)


def check_system_health(backends: BackendRegistry, bin_dir: Path | None = None) -> SystemHealth:
    """Run all health checks and return aggregate status."""
    health = SystemHealth()
    for name in backends.list_backends():
        backend = backends.get(name)
        if backend is not None:
            health.add(check_backend(backend))
    if bin_dir is not None:
        health.add(check_bin_dir(bin_dir))
    return health
