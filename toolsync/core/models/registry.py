"""
Registry models: read-only package metadata.

Registry JSON is loosely typed: an asset's ``target`` may be one string
or a list of strings, and its ``bin`` may be one string or a mapping of
exposed name to path. Both are normalized here, once, into tagged
variants so that the rest of the code never branches on raw JSON types.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Target variants ─────────────────────────────────────────────


class SingleTarget(BaseModel):
    """Asset built for exactly one platform target."""

    kind: Literal["single"] = "single"
    value: str

    model_config = ConfigDict(frozen=True)

    def matches(self, target: str) -> bool:
        return self.value == target


class ManyTargets(BaseModel):
    """Asset usable on several platform targets."""

    kind: Literal["many"] = "many"
    values: frozenset[str]

    model_config = ConfigDict(frozen=True)

    def matches(self, target: str) -> bool:
        return target in self.values


Target = Annotated[SingleTarget | ManyTargets, Field(discriminator="kind")]


# ── Bin variants ────────────────────────────────────────────────


class SingleBin(BaseModel):
    """Asset containing one binary."""

    kind: Literal["single"] = "single"
    path: str

    model_config = ConfigDict(frozen=True)

    def lookup(self, name: str) -> str:
        return self.path


class NamedBins(BaseModel):
    """Asset containing several binaries, keyed by exposed name."""

    kind: Literal["named"] = "named"
    paths: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def lookup(self, name: str) -> str:
        return self.paths.get(name, "")


AssetBin = Annotated[SingleBin | NamedBins, Field(discriminator="kind")]


# ── Registry records ────────────────────────────────────────────


class AssetDescriptor(BaseModel):
    """One per-platform downloadable artifact."""

    target: Target
    file: str = ""
    bin: AssetBin | None = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("target", mode="before")
    @classmethod
    def _coerce_target(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"kind": "single", "value": value}
        if isinstance(value, list | tuple | set | frozenset):
            return {"kind": "many", "values": [str(v) for v in value]}
        return value

    @field_validator("file", mode="before")
    @classmethod
    def _coerce_file(cls, value: Any) -> Any:
        if isinstance(value, list):
            return str(value[0]) if value else ""
        return value

    @field_validator("bin", mode="before")
    @classmethod
    def _coerce_bin(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, str):
            return {"kind": "single", "path": value}
        if isinstance(value, dict) and "kind" not in value:
            return {
                "kind": "named",
                "paths": {str(k): str(v) for k, v in value.items() if isinstance(v, str)},
            }
        return value


class RegistrySource(BaseModel):
    id: str
    assets: list[AssetDescriptor] = Field(default_factory=list, alias="asset")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("assets", mode="before")
    @classmethod
    def _coerce_assets(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, dict):
            # A lone asset object without a target cannot be matched
            return [value] if value.get("target") else []
        return value


class RegistryEntry(BaseModel):
    """Metadata for one package, as published in the registry."""

    name: str
    version: str = ""
    description: str = ""
    homepage: str = ""
    licenses: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    source: RegistrySource
    bin: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    @field_validator("licenses", "languages", "categories", mode="before")
    @classmethod
    def _none_to_list(cls, value: Any) -> Any:
        return value or []

    @field_validator("bin", mode="before")
    @classmethod
    def _none_to_dict(cls, value: Any) -> Any:
        return value or {}

    @property
    def source_id(self) -> str:
        return self.source.id

    @property
    def has_assets(self) -> bool:
        return bool(self.source.assets)
