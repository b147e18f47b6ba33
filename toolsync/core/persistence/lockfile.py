"""
Lockfile persistence: the desired-package list.

Stored as JSON ``{"packages": [{"sourceId", "version"}]}``. Writes are
atomic (write to a temp file in the same directory, then rename) so a
crash mid-write never leaves a truncated lockfile behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from toolsync.core.errors import InvalidIdentifierError, StateWriteError
from toolsync.core.models.package import DesiredPackage, LockEntry, LockfileData
from toolsync.core.services.source_id import normalize, parse_reference, split

logger = logging.getLogger(__name__)

LOCKFILE_NAME = "toolsync-lock.json"


def load_lockfile(path: Path) -> LockfileData:
    """Read a lockfile. A missing or corrupt file yields an empty one."""
    if not path.is_file():
        logger.debug("No lockfile at %s, starting empty", path)
        return LockfileData()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return LockfileData.model_validate(data)
    except json.JSONDecodeError as e:
        logger.warning("Corrupt lockfile %s: %s, starting empty", path, e)
    except (OSError, ValidationError) as e:
        logger.warning("Cannot load lockfile %s: %s, starting empty", path, e)
    return LockfileData()


def save_lockfile(data: LockfileData, path: Path) -> None:
    """Write a lockfile atomically.

    Raises:
        StateWriteError: the directory or file could not be written.
    """
    content = json.dumps(data.model_dump(by_alias=True), indent=2, ensure_ascii=False) + "\n"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".lock_", suffix=".tmp")
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            tmp.replace(path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as e:
        logger.error("Failed to save lockfile %s: %s", path, e)
        raise StateWriteError(f"Cannot write lockfile {path}: {e}") from e
    logger.debug("Lockfile saved to %s", path)


class Lockfile:
    """Desired state, read fresh from disk on every call."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def entries(self) -> list[LockEntry]:
        return load_lockfile(self.path).packages

    def get(self, source_id: str) -> LockEntry | None:
        wanted = normalize(source_id)
        for entry in self.entries():
            if normalize(entry.source_id) == wanted:
                return entry
        return None

    def add(self, source_id: str, version: str) -> None:
        """Insert or update a package, storing the current id form."""
        data = load_lockfile(self.path)
        wanted = normalize(source_id)
        kept = [e for e in data.packages if normalize(e.source_id) != wanted]
        replaced = len(kept) != len(data.packages)
        kept.append(LockEntry(source_id=wanted, version=version))
        data.packages = kept
        save_lockfile(data, self.path)
        logger.debug("%s %s@%s in lockfile", "Updated" if replaced else "Added", wanted, version)

    def remove(self, source_id: str) -> bool:
        """Drop every record of a package. Returns False if none existed."""
        data = load_lockfile(self.path)
        wanted = normalize(source_id)
        kept = [e for e in data.packages if normalize(e.source_id) != wanted]
        if len(kept) == len(data.packages):
            return False
        data.packages = kept
        save_lockfile(data, self.path)
        return True

    def providers(self) -> list[str]:
        seen: dict[str, None] = {}
        for entry in self.entries():
            provider, _ = split(normalize(entry.source_id))
            if provider:
                seen.setdefault(provider, None)
        return list(seen)

    def packages_for(self, provider: str) -> list[DesiredPackage]:
        """Desired packages of one provider, legacy ids included."""
        desired = []
        for entry in self.entries():
            if split(normalize(entry.source_id))[0] != provider:
                continue
            try:
                ref = parse_reference(entry.source_id)
            except InvalidIdentifierError as e:
                logger.warning("Skipping lockfile entry %r: %s", entry.source_id, e)
                continue
            desired.append(DesiredPackage(ref=ref, requested_version=entry.version))
        return desired
