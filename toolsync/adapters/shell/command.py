"""
Shell executor: runs backend tools and reports exit codes.

Every backend talks to its ecosystem's tool (cargo, npm, git, ...)
through this one seam, so tests can substitute ``MockExecutor``
without patching subprocess.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one subprocess invocation."""

    command: list[str] = field(default_factory=list)
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    error: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and self.error is None

    def describe_failure(self) -> str:
        """Human-readable reason for a failed invocation."""
        if self.error:
            return self.error
        detail = self.stderr.strip() or self.stdout.strip()
        msg = f"'{' '.join(self.command)}' exited with code {self.returncode}"
        return f"{msg}: {detail}" if detail else msg


class ShellExecutor:
    """Blocking subprocess runner.

    There is no timeout: a hung backend blocks the caller. Extra
    environment variables are layered over the current process env.
    """

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run a command; output is logged, not returned to the caller."""
        result = self._invoke(command, args, cwd, env)
        if result.stdout.strip():
            logger.debug("%s stdout:\n%s", command, result.stdout.rstrip())
        if result.stderr.strip() and not result.ok:
            logger.debug("%s stderr:\n%s", command, result.stderr.rstrip())
        return result

    def run_capture(
        self,
        command: str,
        args: Sequence[str] = (),
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run a command and keep its stdout for parsing."""
        return self._invoke(command, args, cwd, env)

    def has_command(
        self,
        command: str,
        probe_args: Sequence[str] = ("--version",),
        env: Mapping[str, str] | None = None,
    ) -> bool:
        """Whether ``command`` exists and answers its probe successfully."""
        if shutil.which(command) is None:
            return False
        return self._invoke(command, probe_args, None, env).ok

    def _invoke(
        self,
        command: str,
        args: Sequence[str],
        cwd: Path | str | None,
        env: Mapping[str, str] | None,
    ) -> CommandResult:
        argv = [command, *args]
        full_env = None
        if env:
            full_env = {**os.environ, **env}

        logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd or ".")
        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                env=full_env,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            return CommandResult(command=argv, returncode=127, error=f"Command not found: {command}")
        except OSError as e:
            return CommandResult(command=argv, returncode=126, error=f"Cannot execute {command}: {e}")

        return CommandResult(
            command=argv,
            returncode=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
