"""Locating the scrcpy/adb executables and well-known directories."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

EXE_SUFFIX = ".exe" if sys.platform == "win32" else ""


def app_dir() -> Path:
    """Directory of the running application (works in dev + frozen builds)."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(sys.argv[0]).resolve().parent if sys.argv and sys.argv[0] else Path.cwd()


def default_install_root() -> Path:
    """Where acquired binaries go: beside a frozen app, else the working directory."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path.cwd()


def default_videos_dir() -> str | None:
    """Platform videos directory, or ``None`` if it does not exist."""
    home = Path.home()
    if sys.platform == "darwin":
        candidate = home / "Movies"
    elif sys.platform == "win32":
        candidate = home / "Videos"
    else:
        xdg = os.environ.get("XDG_VIDEOS_DIR", "").strip()
        candidate = Path(os.path.expandvars(xdg)).expanduser() if xdg else home / "Videos"
    return str(candidate) if candidate.is_dir() else None


class BinaryResolver:
    """Resolves a logical binary name to something that can be executed.

    Search order, first existing file wins:

    1. ``custom_dir / name+ext`` when a directory is supplied
    2. ``cwd / bin_dir_name / name+ext``
    3. ``app_dir / bin_dir_name / name+ext``
    4. the bare ``name``, left to the OS ``PATH`` lookup

    Resolution never fails; a missing binary surfaces when it is spawned.
    """

    def __init__(
        self,
        *,
        bin_dir_name: str = "scrcpy-bin",
        cwd: Path | None = None,
        install_dir: Path | None = None,
        exe_suffix: str = EXE_SUFFIX,
    ) -> None:
        self._bin_dir_name = bin_dir_name
        self._cwd = cwd
        self._install_dir = install_dir
        self._exe_suffix = exe_suffix

    def filename(self, name: str) -> str:
        return f"{name}{self._exe_suffix}"

    def candidates(self, name: str, custom_dir: str | None = None) -> list[Path]:
        filename = self.filename(name)
        paths: list[Path] = []
        if custom_dir:
            paths.append(Path(custom_dir) / filename)
        paths.append((self._cwd or Path.cwd()) / self._bin_dir_name / filename)
        paths.append((self._install_dir or app_dir()) / self._bin_dir_name / filename)
        return paths

    def resolve(self, name: str, custom_dir: str | None = None) -> str:
        for path in self.candidates(name, custom_dir):
            if path.exists():
                return str(path)
        logger.debug("no local %s found, falling back to PATH lookup", name)
        return name
