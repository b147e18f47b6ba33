"""
Exposure models: links in the shared bin directory and the runtime
environment a wrapper script has to establish.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class RuntimeEnv(BaseModel):
    """Environment a wrapped executable needs before it can run.

    ``variables`` are exported as-is. ``prepend`` entries are placed in
    front of the caller's existing value (PATH-style, ``:`` separated).
    """

    variables: dict[str, str] = Field(default_factory=dict)
    prepend: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not self.variables and not self.prepend


class ExposureLink(BaseModel):
    """An entry in the exposure directory, as found on disk."""

    exposed_name: str
    target_path: str
    kind: str = "symlink"  # symlink | wrapper
