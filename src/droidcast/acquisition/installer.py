"""Archive extraction and installation of an acquired distribution.

Everything here is blocking filesystem work; the pipeline runs it in the
default executor.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import zipfile
from pathlib import Path

from droidcast.shared.enums import ArchiveFormat
from droidcast.shared.exceptions import ExtractionError, InstallError

logger = logging.getLogger(__name__)


def _remove(path: Path) -> None:
    # A leftover plain file at a directory path is removed too.
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def _reset_dir(path: Path) -> None:
    _remove(path)
    path.mkdir(parents=True, exist_ok=True)


def _check_inside(root: Path, member: str) -> None:
    target = (root / member).resolve()
    if target != root and root not in target.parents:
        raise ExtractionError(f"archive member escapes extraction dir: {member}")


def extract_archive(archive_path: Path, archive: ArchiveFormat, staging_dir: Path) -> None:
    """Decompress ``archive_path`` into a fresh ``staging_dir``.

    Raises:
        ExtractionError: If the archive is unreadable or a member would land
            outside ``staging_dir``.
    """
    try:
        _reset_dir(staging_dir)
        root = staging_dir.resolve()
        if archive is ArchiveFormat.ZIP:
            with zipfile.ZipFile(archive_path) as zf:
                for name in zf.namelist():
                    _check_inside(root, name)
                zf.extractall(staging_dir)
        else:
            with tarfile.open(archive_path, "r:gz") as tf:
                for member in tf.getmembers():
                    _check_inside(root, member.name)
                tf.extractall(staging_dir, filter="data")
    except (zipfile.BadZipFile, tarfile.TarError, OSError) as exc:
        raise ExtractionError(f"Failed to extract {archive_path.name}: {exc}") from exc
    logger.info("extracted %s into %s", archive_path.name, staging_dir)


def _move_tree(src: Path, dst: Path) -> None:
    try:
        os.replace(src, dst)
    except OSError:
        # Cross-device or locked source: fall back to a recursive copy.
        logger.info("rename %s → %s failed, copying instead", src, dst)
        shutil.copytree(src, dst, dirs_exist_ok=True)


def install_distribution(staging_dir: Path, install_dir: Path) -> Path:
    """Move the extracted distribution into ``install_dir``.

    scrcpy archives usually wrap everything in a single versioned root
    folder; that folder becomes ``install_dir``. Anything else installs the
    whole staging directory.

    Raises:
        InstallError: If the staging dir is empty or the move/copy fails.
    """
    try:
        _remove(install_dir)
        entries = list(staging_dir.iterdir())
    except OSError as exc:
        raise InstallError(f"Failed to prepare {install_dir}: {exc}") from exc
    if not entries:
        raise InstallError("archive contained no files")
    source = entries[0] if len(entries) == 1 and entries[0].is_dir() else staging_dir

    try:
        install_dir.parent.mkdir(parents=True, exist_ok=True)
        _move_tree(source, install_dir)
    except (OSError, shutil.Error) as exc:
        raise InstallError(f"Failed to install into {install_dir}: {exc}") from exc
    logger.info("installed scrcpy distribution at %s", install_dir)
    return install_dir


def cleanup(*paths: Path) -> None:
    """Best-effort removal of temporaries; errors are ignored."""
    for path in paths:
        if path.is_dir():
            shutil.rmtree(path, ignore_errors=True)
            continue
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.debug("could not remove %s: %s", path, exc)
