"""
Outcome model: the typed result of one pipeline stage.

Stages never leak exceptions upward. They report success, a non-fatal
warning, or a fatal failure, and the engine applies a single policy:
continue on warnings, abort the package on failures.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from toolsync.core.errors import ErrorKind, ToolsyncError


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Stage(str, Enum):
    """Install pipeline states."""

    IDLE = "idle"
    VERSION_RESOLVING = "version_resolving"
    FETCHING = "fetching"
    PLACING = "placing"
    EXPOSING = "exposing"
    RECORDED = "recorded"
    FAILED = "failed"


class Outcome(BaseModel):
    """Result of one stage for one package."""

    source_id: str
    stage: Stage
    status: Literal["ok", "warning", "failed"] = "ok"
    message: str = ""
    error_kind: ErrorKind | None = None
    at: str = Field(default_factory=_now_iso)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(cls, source_id: str, stage: Stage, message: str = "", **kwargs: Any) -> Outcome:
        """Create a success outcome."""
        return cls(source_id=source_id, stage=stage, status="ok", message=message, **kwargs)

    @classmethod
    def warning(
        cls,
        source_id: str,
        stage: Stage,
        message: str,
        kind: ErrorKind = ErrorKind.EXPOSURE_FAILED,
        **kwargs: Any,
    ) -> Outcome:
        """Create a non-fatal warning outcome."""
        return cls(
            source_id=source_id,
            stage=stage,
            status="warning",
            message=message,
            error_kind=kind,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        source_id: str,
        stage: Stage,
        message: str,
        kind: ErrorKind,
        **kwargs: Any,
    ) -> Outcome:
        """Create a fatal failure outcome."""
        return cls(
            source_id=source_id,
            stage=stage,
            status="failed",
            message=message,
            error_kind=kind,
            **kwargs,
        )

    @classmethod
    def from_error(cls, source_id: str, stage: Stage, error: ToolsyncError) -> Outcome:
        """Convert a raised error into the matching outcome."""
        if error.fatal:
            return cls.failure(source_id, stage, str(error), error.kind)
        return cls.warning(source_id, stage, str(error), error.kind)
