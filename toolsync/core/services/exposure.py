"""
Exposure manager: the shared directory of runnable commands.

Every installed package makes its executables reachable from one flat
directory, either as a relative symlink or as a generated ``sh``
wrapper that sets up a runtime environment and ``exec``s the target.

Ownership is never recorded separately. It is read back from disk:
a symlink's target, or the target line embedded in a wrapper, must lie
under a package's install directory for that package to remove it.
"""

from __future__ import annotations

import logging
import os
import shlex
from pathlib import Path

from toolsync.adapters.shell.filesystem import EXEC_MODE
from toolsync.core.errors import ExposureError
from toolsync.core.models.exposure import ExposureLink, RuntimeEnv

logger = logging.getLogger(__name__)

WRAPPER_MARKER = "# toolsync-target: "
_WRAPPER_HEAD_BYTES = 512


def _norm(path: Path | str) -> Path:
    return Path(os.path.normpath(os.path.abspath(path)))


def _lies_under(target: Path, directory: Path | str) -> bool:
    return _norm(target).is_relative_to(_norm(directory))


def render_wrapper(target: Path, env: RuntimeEnv) -> str:
    """Shell wrapper that prepares ``env`` and delegates to ``target``."""
    lines = ["#!/bin/sh", f"{WRAPPER_MARKER}{target}"]
    for name, value in sorted(env.variables.items()):
        lines.append(f"export {name}={shlex.quote(value)}")
    for name, entries in sorted(env.prepend.items()):
        joined = shlex.quote(":".join(entries))
        lines.append(f'export {name}={joined}"${{{name}:+:${name}}}"')
    lines.append(f'exec {shlex.quote(str(target))} "$@"')
    return "\n".join(lines) + "\n"


class ExposureManager:
    """Creates and removes entries in the exposure directory.

    Not synchronized: concurrent writers to the same name race, and the
    last one wins.
    """

    def __init__(self, bin_dir: Path):
        self._bin_dir = Path(bin_dir)

    @property
    def bin_dir(self) -> Path:
        return self._bin_dir

    def ensure_dir(self) -> None:
        try:
            self._bin_dir.mkdir(parents=True, exist_ok=True)
            self._bin_dir.chmod(EXEC_MODE)
        except OSError as e:
            raise ExposureError(f"Cannot create exposure directory {self._bin_dir}: {e}") from e

    # ── Create ──────────────────────────────────────────────────

    def expose(
        self,
        name: str,
        target: Path,
        runtime_env: RuntimeEnv | None = None,
        owner_dir: Path | None = None,
    ) -> Path:
        """Make ``target`` runnable as ``name``.

        With no runtime env (or an empty one) a relative symlink is
        created; otherwise a wrapper script. Any existing entry of the
        same name is replaced.

        Raises:
            ExposureError: the target is missing or the entry could not
                be written.
        """
        if not name or "/" in name or name.startswith("."):
            raise ExposureError(f"Invalid exposed name: {name!r}")
        target = Path(target)
        if not target.exists():
            raise ExposureError(f"Cannot expose {name}: target {target} does not exist")

        self.ensure_dir()
        dest = self._bin_dir / name
        self._clear(dest, owner_dir)

        try:
            if runtime_env is None or runtime_env.empty:
                rel = os.path.relpath(_norm(target), _norm(self._bin_dir))
                dest.symlink_to(rel)
                os.chmod(target, target.stat().st_mode | EXEC_MODE)
                logger.debug("Linked %s -> %s", dest, rel)
            else:
                dest.write_text(render_wrapper(_norm(target), runtime_env), encoding="utf-8")
                dest.chmod(EXEC_MODE)
                logger.debug("Wrote wrapper %s for %s", dest, target)
        except OSError as e:
            raise ExposureError(f"Cannot expose {name}: {e}") from e
        return dest

    def _clear(self, dest: Path, owner_dir: Path | None) -> None:
        if not (dest.exists() or dest.is_symlink()):
            return
        current = self.read_target(dest)
        if owner_dir is not None and current is not None and not _lies_under(current, owner_dir):
            logger.warning(
                "Replacing %s: it pointed to %s, now owned by %s",
                dest.name, current, owner_dir,
            )
        try:
            dest.unlink()
        except OSError as e:
            logger.warning("Could not remove existing %s: %s", dest, e)

    # ── Inspect ─────────────────────────────────────────────────

    def read_target(self, entry: Path) -> Path | None:
        """Resolved target of a symlink or wrapper, or None."""
        if entry.is_symlink():
            raw = Path(os.readlink(entry))
            if not raw.is_absolute():
                raw = self._bin_dir / raw
            return _norm(raw)
        if entry.is_file():
            try:
                with entry.open("r", encoding="utf-8", errors="replace") as fh:
                    head = fh.read(_WRAPPER_HEAD_BYTES)
            except OSError:
                return None
            for line in head.splitlines():
                if line.startswith(WRAPPER_MARKER):
                    return _norm(line[len(WRAPPER_MARKER):].strip())
        return None

    def links(self) -> list[ExposureLink]:
        """Every managed entry currently in the exposure directory."""
        if not self._bin_dir.is_dir():
            return []
        found = []
        for entry in sorted(self._bin_dir.iterdir()):
            target = self.read_target(entry)
            if target is None:
                continue
            kind = "symlink" if entry.is_symlink() else "wrapper"
            found.append(ExposureLink(exposed_name=entry.name, target_path=str(target), kind=kind))
        return found

    def is_exposed(self, name: str, target: Path) -> bool:
        entry = self._bin_dir / name
        current = self.read_target(entry) if (entry.exists() or entry.is_symlink()) else None
        return current is not None and current == _norm(target)

    # ── Remove ──────────────────────────────────────────────────

    def unexpose(self, name: str, owner_dir: Path | None = None) -> bool:
        """Remove one entry.

        With ``owner_dir`` the entry is only removed when its target lies
        under that directory. A missing entry is not an error.

        Returns:
            True if something was removed.
        """
        entry = self._bin_dir / name
        if not (entry.exists() or entry.is_symlink()):
            return False
        if owner_dir is not None:
            target = self.read_target(entry)
            if target is None or not _lies_under(target, owner_dir):
                logger.debug("Leaving %s: not owned by %s", name, owner_dir)
                return False
        try:
            entry.unlink()
        except OSError as e:
            raise ExposureError(f"Cannot remove {entry}: {e}") from e
        logger.debug("Removed %s", entry)
        return True

    def unexpose_all_under(self, install_dir: Path) -> list[str]:
        """Remove every entry whose target lies under ``install_dir``."""
        removed = []
        for link in self.links():
            if _lies_under(Path(link.target_path), install_dir):
                if self.unexpose(link.exposed_name):
                    removed.append(link.exposed_name)
        return removed
