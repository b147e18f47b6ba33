"""
Error taxonomy for install, remove, update and sync operations.

Each failure class carries an ``ErrorKind`` so that pipeline stages can
turn exceptions into typed outcomes. Only ``ExposureError`` is treated
as non-fatal by the engine; everything else aborts the package (or the
provider, for precondition failures).
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a failure, independent of where it happened."""

    INVALID_IDENTIFIER = "invalid_identifier"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    VERSION_RESOLUTION_FAILED = "version_resolution_failed"
    FETCH_FAILED = "fetch_failed"
    EXTRACT_FAILED = "extract_failed"
    PLACEMENT_FAILED = "placement_failed"
    EXPOSURE_FAILED = "exposure_failed"
    STATE_WRITE_FAILED = "state_write_failed"


class ToolsyncError(Exception):
    """Base class for every failure raised by the installer core."""

    kind: ErrorKind = ErrorKind.PLACEMENT_FAILED

    @property
    def fatal(self) -> bool:
        """Whether this failure aborts the package it belongs to."""
        return self.kind is not ErrorKind.EXPOSURE_FAILED


class InvalidIdentifierError(ToolsyncError):
    """A source identifier is malformed or names an unknown provider."""

    kind = ErrorKind.INVALID_IDENTIFIER


class BackendUnavailableError(ToolsyncError):
    """The external tool a backend relies on is not installed."""

    kind = ErrorKind.BACKEND_UNAVAILABLE


class VersionResolutionError(ToolsyncError):
    """A "latest" request could not be turned into a concrete version."""

    kind = ErrorKind.VERSION_RESOLUTION_FAILED


class FetchError(ToolsyncError):
    """Downloading, cloning or installing through a backend failed."""

    kind = ErrorKind.FETCH_FAILED


class ExtractError(ToolsyncError):
    """A downloaded archive could not be unpacked."""

    kind = ErrorKind.EXTRACT_FAILED


class PlacementError(ToolsyncError):
    """Binaries could not be moved into the package's install directory."""

    kind = ErrorKind.PLACEMENT_FAILED


class ExposureError(ToolsyncError):
    """A link or wrapper in the exposure directory could not be written."""

    kind = ErrorKind.EXPOSURE_FAILED


class StateWriteError(ToolsyncError):
    """The lockfile could not be persisted."""

    kind = ErrorKind.STATE_WRITE_FAILED
