"""
Git host backends: GitHub, GitLab and Codeberg.

A git-host package is either a published release asset (when the
registry lists assets for it) or a plain clone checked out at a tag
or branch. Both live in ``<root>/<owner_repo>``.
"""

from __future__ import annotations

import logging
import urllib.parse
from abc import abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any, ClassVar

from toolsync.adapters.base import VERSION_MARKER, Backend
from toolsync.adapters.net.http import HttpClient
from toolsync.adapters.shell.command import ShellExecutor
from toolsync.adapters.vcs.git import GitClient
from toolsync.core.errors import FetchError, VersionResolutionError
from toolsync.core.models.registry import RegistryEntry

logger = logging.getLogger(__name__)


class GitHostBackend(Backend):
    """Shared behaviour of the git hosting providers."""

    kind: ClassVar[str] = "git"
    web_base: ClassVar[str] = ""

    def __init__(
        self,
        packages_dir: Path,
        executor: ShellExecutor | None = None,
        http: HttpClient | None = None,
    ):
        super().__init__(packages_dir, executor)
        self.git = GitClient(self._executor)
        self.http = http or HttpClient()

    def is_available(self) -> bool:
        return self.git.is_available()

    def repo_url(self, package_id: str) -> str:
        return f"{self.web_base}/{package_id}.git"

    def supports_release_assets(self) -> bool:
        return True

    def asset_url(self, package_id: str, version: str, file_name: str) -> str:
        return f"{self.web_base}/{package_id}/releases/download/{version}/{file_name}"

    @abstractmethod
    def latest_release_url(self, package_id: str) -> str:
        """API endpoint describing the newest release."""

    def parse_latest_release(self, payload: Any) -> str:
        """Tag of the newest release in a host API response."""
        if isinstance(payload, list):
            payload = payload[0] if payload else {}
        if isinstance(payload, dict):
            return str(payload.get("tag_name") or "")
        return ""

    def latest_release(self, package_id: str) -> str:
        url = self.latest_release_url(package_id)
        try:
            tag = self.parse_latest_release(self.http.get_json(url))
        except FetchError as e:
            raise VersionResolutionError(f"Cannot read releases of {self.name}:{package_id}: {e}") from e
        if not tag:
            raise VersionResolutionError(f"{self.name}:{package_id} has no published releases")
        return tag

    def resolve_latest(self, package_id: str, entry: RegistryEntry | None = None) -> str:
        """Latest tag of an existing clone, else the latest published release."""
        repo = self.install_dir(package_id)
        if (repo / ".git").is_dir():
            tag = self.git.latest_tag(repo)
            return tag or self.git.default_branch(repo)
        return self.latest_release(package_id)

    def installed_versions(self, package_ids: Iterable[str]) -> dict[str, str]:
        found = {}
        for package_id in package_ids:
            install_dir = self.install_dir(package_id)
            marker = install_dir / VERSION_MARKER
            if marker.is_file():
                version = marker.read_text(encoding="utf-8").strip()
            elif (install_dir / ".git").is_dir():
                version = self.git.current_ref(install_dir)
            else:
                version = ""
            if version:
                found[package_id] = version
        return found


class GitHubBackend(GitHostBackend):
    web_base = "https://github.com"

    @property
    def name(self) -> str:
        return "github"

    def latest_release_url(self, package_id: str) -> str:
        return f"https://api.github.com/repos/{package_id}/releases/latest"


class GitLabBackend(GitHostBackend):
    web_base = "https://gitlab.com"

    @property
    def name(self) -> str:
        return "gitlab"

    def asset_url(self, package_id: str, version: str, file_name: str) -> str:
        return f"{self.web_base}/{package_id}/-/releases/{version}/downloads/{file_name}"

    def latest_release_url(self, package_id: str) -> str:
        project = urllib.parse.quote(package_id, safe="")
        return f"{self.web_base}/api/v4/projects/{project}/releases"


class CodebergBackend(GitHostBackend):
    web_base = "https://codeberg.org"

    @property
    def name(self) -> str:
        return "codeberg"

    def latest_release_url(self, package_id: str) -> str:
        return f"{self.web_base}/api/v1/repos/{package_id}/releases?limit=1"
