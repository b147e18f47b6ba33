"""
Tests for provider dispatch — install, remove, update, sync and clean.
"""

import json

import pytest

from toolsync.core.errors import InvalidIdentifierError


def _locked(app) -> dict[str, str]:
    return {e.source_id: e.version for e in app.lockfile.entries()}


class TestRouting:
    def test_provider_for_accepts_both_id_forms(self, app):
        assert app.dispatcher.provider_for("npm:prettier").name == "npm"
        assert app.dispatcher.provider_for("pkg:npm/prettier").name == "npm"

    def test_provider_is_cached(self, app):
        assert app.dispatcher.provider("npm") is app.dispatcher.provider("npm")

    def test_unknown_provider(self, app):
        with pytest.raises(InvalidIdentifierError, match="Unknown provider"):
            app.dispatcher.provider("nope")

    def test_wrong_provider_for_package(self, app):
        with pytest.raises(InvalidIdentifierError):
            app.dispatcher.provider("npm").install_report("cargo:ripgrep")


class TestInstall:
    def test_install_latest(self, app, mock_backend):
        assert app.dispatcher.install("npm:prettier") is True
        assert _locked(app) == {"npm:prettier": "3.3.3"}
        assert (app.settings.bin_dir / "prettier").is_symlink()

    def test_install_specific_version(self, app, mock_backend):
        assert app.dispatcher.install("npm:prettier", "3.1.0") is True
        assert _locked(app) == {"npm:prettier": "3.1.0"}
        assert mock_backend.calls("resolve") == []

    def test_install_legacy_id_stores_current_form(self, app):
        app.dispatcher.install("pkg:npm/prettier")
        assert list(_locked(app)) == ["npm:prettier"]

    @pytest.mark.parametrize("source_id", ["pkg:noslash", "bogus", "nope:thing", "npm:"])
    def test_invalid_id_has_no_side_effects(self, app, mock_backend, source_id):
        assert app.dispatcher.install(source_id) is False
        assert mock_backend.call_log == []
        assert not app.settings.lockfile_path.exists()
        assert not app.settings.bin_dir.exists()

    def test_failed_install_returns_false(self, app, mock_backend):
        mock_backend.set_fetch_failure("prettier")
        assert app.dispatcher.install("npm:prettier") is False
        assert _locked(app) == {}

    def test_install_report_details(self, app):
        report = app.dispatcher.provider("npm").install_report("npm:eslint")
        data = report.to_dict()
        assert data["strategy"] == "native"
        assert data["version"] == "9.0.0"
        assert data["exposed"] == ["eslint"]
        assert data["ok"] is True


class TestRemove:
    def test_remove_installed(self, app, mock_backend):
        app.dispatcher.install("npm:prettier")

        assert app.dispatcher.remove("npm:prettier") is True
        assert _locked(app) == {}
        assert not (app.settings.bin_dir / "prettier").exists()
        assert mock_backend.calls("uninstall") == [("uninstall", "prettier", "")]

    def test_remove_missing_is_success(self, app):
        assert app.dispatcher.remove("npm:never-installed") is True

    def test_remove_invalid_id(self, app):
        assert app.dispatcher.remove("pkg:noslash") is False

    def test_remove_leaves_other_packages(self, app):
        app.dispatcher.install("npm:prettier")
        app.dispatcher.install("npm:eslint")

        app.dispatcher.remove("npm:prettier")

        assert _locked(app) == {"npm:eslint": "9.0.0"}
        assert (app.settings.bin_dir / "eslint").is_symlink()


class TestUpdate:
    def test_update_moves_to_latest(self, app, mock_backend):
        app.dispatcher.install("npm:prettier", "3.0.0")

        assert app.dispatcher.update("npm:prettier") is True
        assert _locked(app) == {"npm:prettier": "3.3.3"}
        assert mock_backend.installed_versions(["prettier"]) == {"prettier": "3.3.3"}

    def test_update_when_current_skips_fetch(self, app, mock_backend):
        app.dispatcher.install("npm:prettier")
        mock_backend.reset()

        result = app.dispatcher.provider("npm").update_result("npm:prettier")

        assert result.action == "skipped"
        assert mock_backend.calls("fetch") == []

    def test_update_not_installed(self, app):
        assert app.dispatcher.update("npm:prettier") is False

    def test_update_all(self, app, mock_backend):
        app.dispatcher.install("npm:prettier", "3.0.0")
        app.dispatcher.install("npm:eslint", "8.0.0")

        assert app.dispatcher.update_all() is True
        assert _locked(app) == {"npm:prettier": "3.3.3", "npm:eslint": "9.0.0"}

    def test_update_all_reports_bad_entries(self, app):
        app.settings.lockfile_path.write_text(
            json.dumps({"packages": [{"sourceId": "nope:thing", "version": "1"}]})
        )
        results = app.dispatcher.update_all_report()
        assert [r.action for r in results] == ["failed"]
        assert app.dispatcher.update_all() is False


class TestSyncAndClean:
    def test_sync_one_provider(self, app):
        app.lockfile.add("npm:prettier", "latest")
        assert app.dispatcher.sync("npm") is True
        assert _locked(app) == {"npm:prettier": "3.3.3"}

    def test_sync_everything(self, app):
        app.lockfile.add("npm:eslint", "latest")
        report = app.dispatcher.sync_report()
        assert report.providers == ["npm"]
        assert report.installed == 1

    def test_clean_reinstalls_from_lockfile(self, app, mock_backend):
        app.dispatcher.install("npm:prettier")
        stray = mock_backend.install_root / "stray.txt"
        stray.write_text("left over")
        mock_backend.reset()

        assert app.dispatcher.provider("npm").clean() is True

        assert not stray.exists()
        assert mock_backend.calls("fetch") == [("fetch", "prettier", "3.3.3")]
        assert (app.settings.bin_dir / "prettier").is_symlink()

    def test_clean_keeps_foreign_links(self, app, tmp_path):
        other = tmp_path / "elsewhere" / "tool"
        other.parent.mkdir(parents=True)
        other.write_text("#!/bin/sh\n")
        app.exposure.expose("tool", other)

        app.dispatcher.provider("npm").clean()

        assert (app.settings.bin_dir / "tool").is_symlink()
