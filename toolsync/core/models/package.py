"""
Package models: parsed references, desired packages, lockfile records.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

LATEST = "latest"


class PackageReference(BaseModel):
    """A parsed source identifier. Immutable once built."""

    provider: str
    package_id: str
    raw_source_id: str

    model_config = ConfigDict(frozen=True)

    @property
    def source_id(self) -> str:
        """Current-form identifier (``provider:package``)."""
        return f"{self.provider}:{self.package_id}"

    def __str__(self) -> str:
        return self.source_id


class DesiredPackage(BaseModel):
    """A package the user wants installed, at a requested version."""

    ref: PackageReference
    requested_version: str = ""


class LockEntry(BaseModel):
    """One lockfile record, serialized as ``{"sourceId", "version"}``."""

    source_id: str = Field(alias="sourceId")
    version: str = ""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LockfileData(BaseModel):
    packages: list[LockEntry] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")
