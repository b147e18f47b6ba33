"""
Tests for adapters: shell executor, filesystem helpers, git, and backends.
"""

import gzip
import io
import json
import zipfile
from pathlib import Path

import pytest

from toolsync.adapters.base import safe_dir_name
from toolsync.adapters.mock import MockExecutor
from toolsync.adapters.languages.dotnet import parse_tool_list
from toolsync.adapters.languages.go import GolangBackend
from toolsync.adapters.languages.node import NpmBackend
from toolsync.adapters.languages.python import PypiBackend, canonical_name
from toolsync.adapters.languages.rust import CargoBackend, parse_install_list
from toolsync.adapters.registry import default_backends
from toolsync.adapters.shell.command import CommandResult, ShellExecutor
from toolsync.adapters.shell.filesystem import (
    archive_format,
    extract_archive,
    find_file,
    is_executable,
    place_binary,
    remove_tree,
    replace_tree,
)
from toolsync.adapters.vcs.git import GitClient
from toolsync.adapters.vcs.hosts import CodebergBackend, GitHubBackend, GitLabBackend
from toolsync.core.errors import (
    BackendUnavailableError,
    ExtractError,
    FetchError,
    VersionResolutionError,
)
from toolsync.core.services.source_id import KNOWN_PROVIDERS

# ── Shell Executor Tests ─────────────────────────────────────────────


class TestShellExecutor:
    def test_capture_stdout(self):
        result = ShellExecutor().run_capture("echo", ["hello"])
        assert result.ok
        assert result.stdout.strip() == "hello"

    def test_env_is_layered(self):
        result = ShellExecutor().run_capture("sh", ["-c", "echo $TOOLSYNC_TEST"], env={"TOOLSYNC_TEST": "layered"})
        assert result.stdout.strip() == "layered"

    def test_non_zero_exit(self):
        result = ShellExecutor().run("sh", ["-c", "echo boom >&2; exit 3"])
        assert not result.ok
        assert result.returncode == 3
        assert result.describe_failure().endswith("exited with code 3: boom")

    def test_missing_command(self):
        result = ShellExecutor().run("definitely-not-a-command-xyz")
        assert result.returncode == 127
        assert result.describe_failure() == "Command not found: definitely-not-a-command-xyz"

    def test_has_command(self):
        executor = ShellExecutor()
        assert executor.has_command("sh", ("-c", "true"))
        assert not executor.has_command("definitely-not-a-command-xyz")

    def test_cwd(self, tmp_path: Path):
        result = ShellExecutor().run_capture("pwd", cwd=tmp_path)
        assert Path(result.stdout.strip()).resolve() == tmp_path.resolve()


class TestCommandResult:
    def test_ok(self):
        assert CommandResult(command=["x"]).ok
        assert not CommandResult(command=["x"], returncode=1).ok
        assert not CommandResult(command=["x"], error="nope").ok

    def test_failure_without_output(self):
        assert CommandResult(command=["x", "y"], returncode=2).describe_failure() == "'x y' exited with code 2"


class TestMockExecutor:
    def test_longest_prefix_wins(self):
        ex = MockExecutor(commands=["git"])
        ex.set_response(["git"], "short")
        ex.set_response(["git", "describe"], "long")
        assert ex.run_capture("git", ["describe", "--tags"]).stdout == "long"
        assert ex.run_capture("git", ["status"]).stdout == "short"

    def test_unknown_command(self):
        ex = MockExecutor()
        assert ex.run("cargo", ["--version"]).returncode == 127
        assert not ex.has_command("cargo")
        assert ex.call_log == [["cargo", "--version"]]

    def test_reset(self):
        ex = MockExecutor(commands=["git"])
        ex.set_failure(["git"])
        ex.run("git")
        ex.reset()
        assert ex.call_count == 0
        assert ex.run("git").ok


# ── Filesystem Tests ─────────────────────────────────────────────────


class TestArchiveFormat:
    @pytest.mark.parametrize(
        "name, fmt",
        [
            ("a.tar.gz", "tar.gz"),
            ("a.TGZ", "tar.gz"),
            ("a.tar.xz", "tar.xz"),
            ("a.zip", "zip"),
            ("a.gz", "gz"),
            ("a", "binary"),
            ("a.exe", "binary"),
        ],
    )
    def test_by_name(self, name, fmt):
        assert archive_format(name) == fmt


class TestExtractArchive:
    def test_tarball(self, tmp_path: Path, tarball):
        archive = tmp_path / "tool.tar.gz"
        archive.write_bytes(tarball({"tool-1/bin/tool": "#!/bin/sh\n"}))
        out = extract_archive(archive, tmp_path / "out")
        assert (out / "tool-1" / "bin" / "tool").is_file()

    def test_zip(self, tmp_path: Path):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("tool.exe", "MZ")
        archive = tmp_path / "tool.zip"
        archive.write_bytes(buf.getvalue())
        assert (extract_archive(archive, tmp_path / "out") / "tool.exe").read_text() == "MZ"

    def test_single_gzip_file(self, tmp_path: Path):
        archive = tmp_path / "tool-linux.gz"
        archive.write_bytes(gzip.compress(b"#!/bin/sh\n"))
        target = extract_archive(archive, tmp_path / "out") / "tool-linux"
        assert target.read_bytes() == b"#!/bin/sh\n"
        assert is_executable(target)

    def test_bare_binary(self, tmp_path: Path):
        archive = tmp_path / "tool"
        archive.write_text("#!/bin/sh\n")
        target = extract_archive(archive, tmp_path / "out") / "tool"
        assert is_executable(target)

    def test_corrupt(self, tmp_path: Path):
        archive = tmp_path / "tool.tar.gz"
        archive.write_bytes(b"not an archive")
        with pytest.raises(ExtractError, match="tool.tar.gz"):
            extract_archive(archive, tmp_path / "out")


class TestPlacement:
    def test_place_binary(self, tmp_path: Path):
        src = tmp_path / "src" / "tool"
        src.parent.mkdir()
        src.write_text("x")
        placed = place_binary(src, tmp_path / "dest", "renamed")
        assert placed == tmp_path / "dest" / "renamed"
        assert is_executable(placed)

    def test_replace_tree(self, tmp_path: Path):
        final = tmp_path / "final"
        final.mkdir()
        (final / "old").write_text("old")
        staged = tmp_path / "staged"
        staged.mkdir()
        (staged / "new").write_text("new")

        replace_tree(staged, final)

        assert [p.name for p in final.iterdir()] == ["new"]
        assert not staged.exists()

    def test_remove_tree(self, tmp_path: Path):
        d = tmp_path / "d"
        (d / "sub").mkdir(parents=True)
        f = tmp_path / "f"
        f.write_text("x")
        assert remove_tree(d) is True
        assert remove_tree(f) is True
        assert remove_tree(tmp_path / "missing") is False

    def test_find_file(self, tmp_path: Path):
        (tmp_path / "b" / "deep").mkdir(parents=True)
        (tmp_path / "b" / "deep" / "tool").write_text("x")
        assert find_file(tmp_path, "tool") == tmp_path / "b" / "deep" / "tool"
        assert find_file(tmp_path, "other") is None

    def test_safe_dir_name(self):
        assert safe_dir_name("BurntSushi/ripgrep") == "BurntSushi_ripgrep"
        assert safe_dir_name("@biomejs/biome") == "@biomejs_biome"


# ── Git Tests ────────────────────────────────────────────────────────


@pytest.fixture
def git(executor: MockExecutor) -> GitClient:
    return GitClient(executor)


class TestGitClient:
    def test_latest_tag(self, git, executor, tmp_path: Path):
        executor.set_response(["git", "describe", "--tags", "--abbrev=0"], "v1.2.0\n")
        assert git.latest_tag(tmp_path) == "v1.2.0"
        assert ["git", "fetch", "--tags", "origin"] in executor.call_log

    def test_no_tags(self, git, executor, tmp_path: Path):
        executor.set_failure(["git", "describe"], stderr="fatal: No names found")
        assert git.latest_tag(tmp_path) == ""

    def test_default_branch_from_origin_head(self, git, executor, tmp_path: Path):
        executor.set_response(["git", "symbolic-ref"], "refs/remotes/origin/develop\n")
        assert git.default_branch(tmp_path) == "develop"

    def test_default_branch_probes_conventional_names(self, git, executor, tmp_path: Path):
        executor.set_failure(["git", "symbolic-ref"])
        executor.set_failure(["git", "show-ref"])
        executor.set_response(["git", "show-ref", "--verify", "--quiet", "refs/remotes/origin/master"])
        assert git.default_branch(tmp_path) == "master"

    def test_default_branch_fallback(self, git, executor, tmp_path: Path):
        executor.set_failure(["git", "symbolic-ref"])
        executor.set_failure(["git", "show-ref"])
        assert git.default_branch(tmp_path) == "main"

    def test_clone_failure(self, git, executor, tmp_path: Path):
        executor.set_failure(["git", "clone"], stderr="fatal: repository not found")
        with pytest.raises(FetchError, match="repository not found"):
            git.clone("https://example.com/x.git", tmp_path / "x")

    def test_current_ref_prefers_tag(self, git, executor, tmp_path: Path):
        executor.set_response(["git", "describe", "--tags", "--exact-match"], "v2.0.0\n")
        assert git.current_ref(tmp_path) == "v2.0.0"

    def test_current_ref_branch(self, git, executor, tmp_path: Path):
        executor.set_failure(["git", "describe"])
        executor.set_response(["git", "rev-parse"], "main\n")
        assert git.current_ref(tmp_path) == "main"


# ── Git Host Tests ───────────────────────────────────────────────────


class TestGitHosts:
    def test_github_latest_release(self, tmp_path: Path, executor, fake_http):
        fake_http.routes["https://api.github.com/repos/acme/tool/releases/latest"] = {"tag_name": "v3.1.0"}
        backend = GitHubBackend(tmp_path, executor, fake_http)
        assert backend.resolve_latest("acme/tool") == "v3.1.0"

    def test_gitlab_release_list(self, tmp_path: Path, executor, fake_http):
        fake_http.routes["https://gitlab.com/api/v4/projects/acme%2Ftool/releases"] = [
            {"tag_name": "v2.0.0"},
            {"tag_name": "v1.0.0"},
        ]
        assert GitLabBackend(tmp_path, executor, fake_http).latest_release("acme/tool") == "v2.0.0"

    def test_codeberg_no_releases(self, tmp_path: Path, executor, fake_http):
        fake_http.routes["https://codeberg.org/api/v1/repos/acme/tool/releases?limit=1"] = []
        with pytest.raises(VersionResolutionError, match="no published releases"):
            CodebergBackend(tmp_path, executor, fake_http).latest_release("acme/tool")

    def test_api_failure(self, tmp_path: Path, executor, fake_http):
        with pytest.raises(VersionResolutionError, match="Cannot read releases"):
            GitHubBackend(tmp_path, executor, fake_http).latest_release("acme/tool")

    def test_existing_clone_uses_tags(self, tmp_path: Path, executor, fake_http):
        backend = GitHubBackend(tmp_path, executor, fake_http)
        (backend.install_dir("acme/tool") / ".git").mkdir(parents=True)
        executor.set_response(["git", "describe", "--tags", "--abbrev=0"], "v0.9.0\n")
        assert backend.resolve_latest("acme/tool") == "v0.9.0"
        assert fake_http.requested == []

    def test_asset_urls(self, tmp_path: Path):
        assert (
            GitHubBackend(tmp_path).asset_url("a/b", "v1", "b.tar.gz")
            == "https://github.com/a/b/releases/download/v1/b.tar.gz"
        )
        assert (
            GitLabBackend(tmp_path).asset_url("a/b", "v1", "b.tar.gz")
            == "https://gitlab.com/a/b/-/releases/v1/downloads/b.tar.gz"
        )

    def test_installed_from_marker(self, tmp_path: Path, executor):
        backend = GitHubBackend(tmp_path, executor)
        install_dir = backend.install_dir("acme/tool")
        install_dir.mkdir(parents=True)
        (install_dir / ".toolsync-version").write_text("v1.0.0\n")
        assert backend.installed_versions(["acme/tool", "acme/other"]) == {"acme/tool": "v1.0.0"}

    def test_git_host_does_not_require_git(self, tmp_path: Path):
        assert GitHubBackend(tmp_path, MockExecutor()).requires_tool is False


# ── Native Backend Tests ─────────────────────────────────────────────


CARGO_LIST = """\
ripgrep v14.1.0:
    rg
tokei v12.1.2 (https://github.com/XAMPPRocky/tokei#abc):
    tokei
"""

DOTNET_LIST = """\
Package Id        Version      Commands
-------------------------------------------
csharpier         0.28.2       dotnet-csharpier
dotnet-ef         8.0.4        dotnet-ef
"""


class TestCargo:
    def test_parse_install_list(self):
        assert parse_install_list(CARGO_LIST) == {
            "ripgrep": ("14.1.0", ["rg"]),
            "tokei": ("12.1.2", ["tokei"]),
        }

    def test_resolve_latest(self, tmp_path: Path):
        ex = MockExecutor(commands=["cargo"])
        ex.set_response(["cargo", "search"], 'ripgrep = "14.1.0"    # fast grep\n')
        assert CargoBackend(tmp_path, ex).resolve_latest("ripgrep") == "14.1.0"

    def test_install_args(self, tmp_path: Path):
        ex = MockExecutor(commands=["cargo"])
        backend = CargoBackend(tmp_path, ex)
        backend.fetch_and_place("ripgrep", "14.1.0")
        assert ex.call_log[-1] == [
            "cargo", "install", "--root", str(tmp_path / "cargo"),
            "ripgrep", "--force", "--locked", "--version", "14.1.0",
        ]

    def test_binaries_from_install_list(self, tmp_path: Path):
        ex = MockExecutor(commands=["cargo"])
        ex.set_response(["cargo", "install", "--list"], CARGO_LIST)
        backend = CargoBackend(tmp_path, ex)
        backend.bin_dir().mkdir(parents=True)
        (backend.bin_dir() / "rg").write_text("")
        assert backend.exposed_binaries("ripgrep", None) == {"rg": backend.bin_dir() / "rg"}
        assert backend.installed_versions(["ripgrep", "fd-find"]) == {"ripgrep": "14.1.0"}

    def test_missing_toolchain(self, tmp_path: Path):
        backend = CargoBackend(tmp_path, MockExecutor())
        assert not backend.is_available()
        with pytest.raises(BackendUnavailableError, match="cargo is not installed"):
            backend.resolve_latest("ripgrep")

    def test_failed_lookup(self, tmp_path: Path):
        ex = MockExecutor(commands=["cargo"])
        ex.set_failure(["cargo", "search"], stderr="network down")
        with pytest.raises(VersionResolutionError, match="network down"):
            CargoBackend(tmp_path, ex).resolve_latest("ripgrep")


class TestDotnet:
    def test_parse_tool_list(self):
        tools = parse_tool_list(DOTNET_LIST)
        assert tools["csharpier"] == ("0.28.2", ["dotnet-csharpier"])
        assert tools["dotnet-ef"][0] == "8.0.4"


class TestNpm:
    def test_resolve_latest(self, tmp_path: Path):
        ex = MockExecutor(commands=["npm"])
        ex.set_response(["npm", "view"], "3.3.3\n")
        assert NpmBackend(tmp_path, ex).resolve_latest("prettier") == "3.3.3"

    def test_manifest_bins(self, tmp_path: Path):
        backend = NpmBackend(tmp_path, MockExecutor(commands=["npm"]))
        pkg = backend.install_root / "node_modules" / "@biomejs" / "biome"
        pkg.mkdir(parents=True)
        (pkg / "package.json").write_text(json.dumps({"version": "1.9.0", "bin": {"biome": "bin/biome"}}))
        (pkg / "bin").mkdir()
        (pkg / "bin" / "biome").write_text("")

        assert backend.installed_versions(["@biomejs/biome"]) == {"@biomejs/biome": "1.9.0"}
        assert backend.exposed_binaries("@biomejs/biome", None) == {"biome": pkg / "bin" / "biome"}


class TestPypi:
    def test_canonical_name(self):
        assert canonical_name("Black_Formatter.x") == "black-formatter-x"

    def test_installed_from_dist_info(self, tmp_path: Path):
        backend = PypiBackend(tmp_path, MockExecutor(commands=["pip"]))
        lib = backend.lib_dir("Black")
        (lib / "black-24.4.2.dist-info").mkdir(parents=True)
        assert backend.installed_versions(["Black"]) == {"Black": "24.4.2"}

    def test_scripts_need_wrapper(self, tmp_path: Path):
        backend = PypiBackend(tmp_path)
        env = backend.runtime_env("black")
        assert env.prepend["PYTHONPATH"] == [str(backend.lib_dir("black"))]


class TestGolang:
    @pytest.mark.parametrize(
        "package_id, name",
        [
            ("golang.org/x/tools/gopls", "gopls"),
            ("github.com/owner/tool/v2", "tool"),
        ],
    )
    def test_binary_names(self, tmp_path: Path, package_id, name):
        assert GolangBackend(tmp_path).binary_names(package_id, None) == [name]

    def test_gobin(self, tmp_path: Path):
        backend = GolangBackend(tmp_path)
        assert backend.tool_env() == {"GOBIN": str(tmp_path / "golang" / "bin")}


# ── Registry Tests ───────────────────────────────────────────────────


class TestBackendRegistry:
    def test_default_backends_cover_every_provider(self, tmp_path: Path):
        registry = default_backends(tmp_path, MockExecutor())
        assert sorted(registry.list_backends()) == sorted(KNOWN_PROVIDERS)
