"""
Filesystem helpers: archive extraction and binary placement.

Format dispatch is by file name: ``.tar.gz``/``.tgz``, ``.tar.xz``,
``.zip``, plain ``.gz``. Anything else is treated as a single,
already-runnable file.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import stat
import tarfile
import zipfile
from pathlib import Path

from toolsync.core.errors import ExtractError, PlacementError

logger = logging.getLogger(__name__)

EXEC_MODE = 0o755


def archive_format(name: str) -> str:
    """Classify an artifact by its file name."""
    lower = name.lower()
    if lower.endswith((".tar.gz", ".tgz")):
        return "tar.gz"
    if lower.endswith((".tar.xz", ".txz")):
        return "tar.xz"
    if lower.endswith(".zip"):
        return "zip"
    if lower.endswith(".gz"):
        return "gz"
    return "binary"


def extract_archive(archive: Path, dest: Path) -> Path:
    """Unpack ``archive`` into ``dest`` and return ``dest``.

    Raises:
        ExtractError: the archive is corrupt or cannot be written out.
    """
    fmt = archive_format(archive.name)
    dest.mkdir(parents=True, exist_ok=True)
    logger.debug("Extracting %s (%s) into %s", archive.name, fmt, dest)

    try:
        if fmt in ("tar.gz", "tar.xz"):
            with tarfile.open(archive, "r:*") as tar:
                tar.extractall(dest, filter="data")
        elif fmt == "zip":
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(dest)
        elif fmt == "gz":
            target = dest / archive.name[: -len(".gz")]
            with gzip.open(archive, "rb") as src, target.open("wb") as out:
                shutil.copyfileobj(src, out)
            make_executable(target)
        else:
            target = dest / archive.name
            shutil.copy2(archive, target)
            make_executable(target)
    except (tarfile.TarError, zipfile.BadZipFile, gzip.BadGzipFile, EOFError, OSError) as e:
        raise ExtractError(f"Cannot extract {archive.name}: {e}") from e

    return dest


def make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | EXEC_MODE)


def is_executable(path: Path) -> bool:
    try:
        st = path.stat()
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode) and bool(st.st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))


def find_file(root: Path, name: str) -> Path | None:
    """Depth-first search for a regular file called ``name``."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        if name in filenames:
            candidate = Path(dirpath) / name
            if candidate.is_file():
                return candidate
    return None


def place_binary(source: Path, dest_dir: Path, name: str | None = None) -> Path:
    """Copy ``source`` into ``dest_dir`` and mark it executable.

    Raises:
        PlacementError: the copy or chmod failed.
    """
    target = dest_dir / (name or source.name)
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        target.chmod(EXEC_MODE)
    except OSError as e:
        raise PlacementError(f"Cannot place {source.name} into {dest_dir}: {e}") from e
    return target


def replace_tree(staged: Path, final: Path) -> None:
    """Swap a fully staged directory into place."""
    try:
        if final.exists() or final.is_symlink():
            shutil.rmtree(final)
        final.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(staged), str(final))
    except OSError as e:
        raise PlacementError(f"Cannot move install into {final}: {e}") from e


def remove_tree(path: Path) -> bool:
    """Delete a directory tree. Returns False if there was nothing to delete."""
    if not (path.exists() or path.is_symlink()):
        return False
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        raise PlacementError(f"Cannot remove {path}: {e}") from e
    return True
