"""
Git client: the handful of git operations the git strategy needs.

Uses the git CLI through the shell executor, never a library.
"""

from __future__ import annotations

import logging
from pathlib import Path

from toolsync.adapters.shell.command import CommandResult, ShellExecutor
from toolsync.core.errors import FetchError, PlacementError

logger = logging.getLogger(__name__)

_REMOTE_HEAD_PREFIX = "refs/remotes/origin/"
CONVENTIONAL_BRANCHES = ("main", "master", "trunk")
FALLBACK_BRANCH = "main"


class GitClient:
    """Thin wrapper over ``git`` invocations."""

    def __init__(self, executor: ShellExecutor | None = None):
        self._executor = executor or ShellExecutor()

    def is_available(self) -> bool:
        return self._executor.has_command("git", ("--version",))

    def _git(self, args: list[str], cwd: Path | None = None) -> CommandResult:
        return self._executor.run_capture("git", args, cwd=cwd)

    # ── Fetching ────────────────────────────────────────────────

    def clone(self, url: str, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        result = self._git(["clone", url, str(dest)])
        if not result.ok:
            raise FetchError(f"git clone {url} failed: {result.describe_failure()}")

    def fetch(self, repo: Path) -> None:
        result = self._git(["fetch", "origin"], cwd=repo)
        if not result.ok:
            raise FetchError(f"git fetch in {repo} failed: {result.describe_failure()}")

    def clone_or_fetch(self, url: str, dest: Path) -> None:
        if (dest / ".git").is_dir():
            logger.debug("Fetching updates into %s", dest)
            self.fetch(dest)
        else:
            logger.debug("Cloning %s into %s", url, dest)
            self.clone(url, dest)

    # ── Refs ────────────────────────────────────────────────────

    def latest_tag(self, repo: Path) -> str:
        """Most recent tag reachable from HEAD, or "" if there are none."""
        self._git(["fetch", "--tags", "origin"], cwd=repo)
        result = self._git(["describe", "--tags", "--abbrev=0"], cwd=repo)
        return result.stdout.strip() if result.ok else ""

    def default_branch(self, repo: Path) -> str:
        """The remote's default branch.

        Tries the symbolic ``origin/HEAD`` first, then conventional
        branch names, then gives up with ``main``.
        """
        result = self._git(["symbolic-ref", "refs/remotes/origin/HEAD"], cwd=repo)
        ref = result.stdout.strip()
        if result.ok and ref.startswith(_REMOTE_HEAD_PREFIX):
            return ref[len(_REMOTE_HEAD_PREFIX):]

        for branch in CONVENTIONAL_BRANCHES:
            probe = self._git(
                ["show-ref", "--verify", "--quiet", f"{_REMOTE_HEAD_PREFIX}{branch}"],
                cwd=repo,
            )
            if probe.ok:
                return branch
        return FALLBACK_BRANCH

    def checkout(self, repo: Path, ref: str) -> None:
        result = self._git(["checkout", ref], cwd=repo)
        if not result.ok:
            raise PlacementError(f"git checkout {ref} failed: {result.describe_failure()}")

    def current_ref(self, repo: Path) -> str:
        """Tag at HEAD if there is one, else the branch name."""
        tag = self._git(["describe", "--tags", "--exact-match"], cwd=repo)
        if tag.ok and tag.stdout.strip():
            return tag.stdout.strip()
        branch = self._git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=repo)
        if branch.ok:
            return branch.stdout.strip()
        return ""
