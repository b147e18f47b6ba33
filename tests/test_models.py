"""
Tests for domain models: registry variants, lockfile records, outcomes.
"""

import pytest
from pydantic import ValidationError

from toolsync.core.errors import (
    ErrorKind,
    ExposureError,
    FetchError,
    StateWriteError,
)
from toolsync.core.models import (
    LockEntry,
    LockfileData,
    ManyTargets,
    NamedBins,
    Outcome,
    PackageReference,
    RegistryEntry,
    RuntimeEnv,
    SingleBin,
    SingleTarget,
    Stage,
)


RIPGREP = {
    "name": "ripgrep",
    "version": "14.1.0",
    "description": "Fast grep",
    "licenses": ["MIT"],
    "languages": None,
    "categories": [],
    "source": {
        "id": "github:BurntSushi/ripgrep",
        "asset": [
            {
                "target": "linux_x64_gnu",
                "file": "ripgrep-{{version}}-x86_64-unknown-linux-musl.tar.gz:ripgrep-{{version}}-x86_64-unknown-linux-musl/",
                "bin": "rg",
            },
            {
                "target": ["darwin_x64", "darwin_arm64"],
                "file": "ripgrep-{{version}}-universal-apple-darwin.tar.gz",
                "bin": {"rg": "rg"},
            },
        ],
    },
    "bin": {"rg": "{{source.asset.bin}}"},
}


class TestRegistryEntry:
    def test_parses_full_record(self):
        entry = RegistryEntry.model_validate(RIPGREP)
        assert entry.source_id == "github:BurntSushi/ripgrep"
        assert entry.has_assets
        assert entry.languages == []
        assert entry.bin == {"rg": "{{source.asset.bin}}"}

    def test_target_variants(self):
        entry = RegistryEntry.model_validate(RIPGREP)
        single, many = entry.source.assets
        assert isinstance(single.target, SingleTarget)
        assert isinstance(many.target, ManyTargets)
        assert many.target.matches("darwin_arm64")
        assert not single.target.matches("linux_x64")

    def test_bin_variants(self):
        entry = RegistryEntry.model_validate(RIPGREP)
        single, many = entry.source.assets
        assert isinstance(single.bin, SingleBin)
        assert isinstance(many.bin, NamedBins)
        assert single.bin.lookup("anything") == "rg"
        assert many.bin.lookup("rg") == "rg"
        assert many.bin.lookup("missing") == ""

    def test_entry_without_assets(self):
        entry = RegistryEntry.model_validate({"name": "prettier", "source": {"id": "npm:prettier"}})
        assert not entry.has_assets
        assert entry.bin == {}

    def test_list_file_takes_first(self):
        entry = RegistryEntry.model_validate(
            {
                "name": "x",
                "source": {"id": "github:o/x", "asset": [{"target": "linux_x64", "file": ["a.zip", "b.zip"]}]},
            }
        )
        assert entry.source.assets[0].file == "a.zip"

    def test_missing_source_is_invalid(self):
        with pytest.raises(ValidationError):
            RegistryEntry.model_validate({"name": "broken"})


class TestPackageModels:
    def test_reference_is_frozen(self):
        ref = PackageReference(provider="cargo", package_id="ripgrep", raw_source_id="cargo:ripgrep")
        with pytest.raises(ValidationError):
            ref.provider = "npm"

    def test_lock_entry_aliases(self):
        entry = LockEntry.model_validate({"sourceId": "npm:x", "version": "1.0", "extra": True})
        assert entry.source_id == "npm:x"
        assert entry.model_dump(by_alias=True) == {"sourceId": "npm:x", "version": "1.0"}

    def test_lockfile_data_defaults(self):
        assert LockfileData().packages == []


class TestOutcome:
    def test_success(self):
        o = Outcome.success("npm:x", Stage.RECORDED, "installed 1.0")
        assert o.ok and not o.failed
        assert o.error_kind is None

    def test_exposure_error_becomes_warning(self):
        o = Outcome.from_error("npm:x", Stage.EXPOSING, ExposureError("no link"))
        assert o.status == "warning"
        assert o.error_kind == ErrorKind.EXPOSURE_FAILED

    @pytest.mark.parametrize("error", [FetchError("down"), StateWriteError("disk full")])
    def test_other_errors_are_failures(self, error):
        o = Outcome.from_error("npm:x", Stage.FETCHING, error)
        assert o.failed
        assert o.error_kind == error.kind
        assert o.message == str(error)


class TestRuntimeEnv:
    def test_empty(self):
        assert RuntimeEnv().empty
        assert not RuntimeEnv(variables={"A": "1"}).empty
        assert not RuntimeEnv(prepend={"PATH": ["/x"]}).empty
