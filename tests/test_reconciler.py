"""
Tests for the reconciliation engine: sync, idempotence, partial failure.
"""

import json

import pytest

from toolsync.adapters.mock import MockBackend
from toolsync.core.context import AppContext
from toolsync.core.engine.reconciler import PackageResult, SyncReport


def _lock(app: AppContext, *pairs: tuple[str, str]) -> None:
    app.settings.lockfile_path.write_text(
        json.dumps({"packages": [{"sourceId": sid, "version": v} for sid, v in pairs]})
    )


def _versions(app: AppContext) -> dict[str, str]:
    return {e.source_id: e.version for e in app.lockfile.entries()}


# ── Sync ────────────────────────────────────────────────────────


class TestSync:
    def test_installs_everything_desired(self, app, mock_backend):
        _lock(app, ("npm:prettier", "latest"), ("npm:eslint", "latest"))

        report = app.engine.sync("npm")

        assert report.all_ok
        assert report.installed == 2
        assert (app.settings.bin_dir / "prettier").is_symlink()
        assert (app.settings.bin_dir / "eslint").is_symlink()

    def test_second_sync_is_a_no_op(self, app, mock_backend):
        _lock(app, ("npm:prettier", "latest"), ("npm:eslint", "latest"))
        app.engine.sync("npm")
        mock_backend.reset()

        report = app.engine.sync("npm")

        assert report.skipped == 2
        assert report.installed == 0
        assert mock_backend.calls("fetch") == []
        assert mock_backend.calls("resolve") == []

    def test_latest_is_pinned_to_resolved_version(self, app, mock_backend):
        mock_backend.latest["prettier"] = "2.3.4"
        _lock(app, ("npm:prettier", "latest"))

        app.engine.sync("npm")

        assert _versions(app) == {"npm:prettier": "2.3.4"}

    def test_one_failure_does_not_block_the_rest(self, app, mock_backend):
        _lock(app, ("npm:prettier", "latest"), ("npm:eslint", "latest"))
        mock_backend.set_fetch_failure("prettier", "registry returned 500")

        report = app.engine.sync("npm")

        assert not report.all_ok
        assert report.status == "partial"
        by_id = {r.source_id: r for r in report.results}
        assert by_id["npm:prettier"].action == "failed"
        assert by_id["npm:prettier"].message == "registry returned 500"
        assert by_id["npm:eslint"].action == "installed"
        assert (app.settings.bin_dir / "eslint").is_symlink()
        assert not (app.settings.bin_dir / "prettier").exists()
        assert _versions(app) == {"npm:prettier": "latest", "npm:eslint": "9.0.0"}

    def test_resolution_failure_is_per_package(self, app, mock_backend):
        _lock(app, ("npm:prettier", "latest"), ("npm:eslint", "latest"))
        mock_backend.set_resolve_failure("eslint", "offline")

        report = app.engine.sync("npm")

        assert [r.action for r in report.results] == ["installed", "failed"]

    def test_concrete_version_change_reinstalls(self, app, mock_backend):
        _lock(app, ("npm:prettier", "latest"))
        app.engine.sync("npm")
        _lock(app, ("npm:prettier", "3.0.0"))

        report = app.engine.sync("npm")

        assert report.installed == 1
        assert mock_backend.calls("fetch")[-1] == ("fetch", "prettier", "3.0.0")
        assert mock_backend.installed_versions(["prettier"]) == {"prettier": "3.0.0"}

    def test_nothing_desired(self, app, mock_backend):
        report = app.engine.sync("npm")
        assert report.all_ok
        assert report.results == []
        assert mock_backend.install_root.is_dir()


class TestSyncPreconditions:
    def test_unknown_provider_is_fatal(self, app):
        report = app.engine.sync("cargo")
        assert report.fatal_errors == {"cargo": "Unknown provider 'cargo'"}
        assert report.status == "failed"

    def test_missing_toolchain_aborts_provider(self, app, mock_backend):
        _lock(app, ("npm:prettier", "latest"))
        mock_backend.set_available(False)

        report = app.engine.sync("npm")

        assert "npm" in report.fatal_errors
        assert report.results == []
        assert mock_backend.call_log == []
        # the install root is prepared before the toolchain check
        assert mock_backend.install_root.is_dir()

    def test_unqueryable_install_state_means_reinstall(self, app, mock_backend, monkeypatch):
        _lock(app, ("npm:prettier", "latest"))
        app.engine.sync("npm")

        def broken(package_ids):
            raise OSError("permission denied")

        monkeypatch.setattr(mock_backend, "installed_versions", broken)
        report = app.engine.sync("npm")

        assert report.installed == 1
        assert report.all_ok


class TestSyncRepair:
    def test_deleted_link_is_recreated(self, app):
        _lock(app, ("npm:prettier", "latest"))
        app.engine.sync("npm")
        link = app.settings.bin_dir / "prettier"
        link.unlink()

        report = app.engine.sync("npm")

        assert report.skipped == 1
        assert link.is_symlink()

    def test_legacy_id_is_rewritten(self, app, mock_backend):
        mock_backend.fetch_and_place("prettier", "3.3.3")
        mock_backend.record_version("prettier", "3.3.3")
        _lock(app, ("pkg:npm/prettier", "3.3.3"))

        report = app.engine.sync("npm")

        assert report.skipped == 1
        assert _versions(app) == {"npm:prettier": "3.3.3"}

    def test_legacy_id_with_latest_installs_and_migrates(self, app):
        _lock(app, ("pkg:npm/prettier", "latest"))
        app.engine.sync("npm")
        assert _versions(app) == {"npm:prettier": "3.3.3"}


# ── Multiple providers ──────────────────────────────────────────


@pytest.fixture
def cargo(app: AppContext, settings) -> MockBackend:
    backend = MockBackend(settings.packages_dir, provider="cargo", latest={"ripgrep": "14.1.0"})
    app.backends.register(backend)
    return backend


class TestSyncAll:
    def test_every_locked_provider(self, app, cargo):
        _lock(app, ("npm:prettier", "latest"), ("cargo:ripgrep", "latest"))

        report = app.engine.sync_all()

        assert report.providers == ["npm", "cargo"]
        assert report.installed == 2
        assert (app.settings.bin_dir / "ripgrep").is_symlink()

    def test_fatal_provider_does_not_block_others(self, app, cargo, mock_backend):
        _lock(app, ("npm:prettier", "latest"), ("cargo:ripgrep", "latest"))
        mock_backend.set_available(False)

        report = app.engine.sync_all()

        assert list(report.fatal_errors) == ["npm"]
        assert [r.source_id for r in report.results] == ["cargo:ripgrep"]
        assert report.status == "partial"

    def test_explicit_provider_list(self, app, cargo):
        _lock(app, ("npm:prettier", "latest"), ("cargo:ripgrep", "latest"))
        report = app.engine.sync_all(["cargo"])
        assert report.providers == ["cargo"]


# ── Reports ─────────────────────────────────────────────────────


class TestReports:
    def test_package_result_warnings(self, app):
        _lock(app, ("npm:prettier", "latest"))
        result = app.engine.sync("npm").results[0]
        assert result.ok
        assert result.warnings == []
        assert result.to_dict()["action"] == "installed"

    def test_sync_report_dict(self):
        report = SyncReport(
            providers=["npm"],
            results=[PackageResult("npm:a", "installed", "1"), PackageResult("npm:b", "failed")],
        )
        data = report.to_dict()
        assert data["status"] == "partial"
        assert (data["installed"], data["failed"]) == (1, 1)
        assert [p["source_id"] for p in data["packages"]] == ["npm:a", "npm:b"]

    def test_merge(self):
        left = SyncReport(providers=["npm"], fatal_errors={"npm": "x"})
        left.merge(SyncReport(providers=["cargo"], results=[PackageResult("cargo:a", "skipped")]))
        assert left.providers == ["npm", "cargo"]
        assert left.skipped == 1
        assert not left.all_ok


def test_lockfile_untouched_by_failed_sync(app, mock_backend):
    _lock(app, ("npm:prettier", "1.0.0"))
    before = app.settings.lockfile_path.read_text()
    mock_backend.set_fetch_failure("prettier")

    app.engine.sync("npm")

    assert app.settings.lockfile_path.read_text() == before
