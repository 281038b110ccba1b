"""Platform-specific process termination strategies."""

from __future__ import annotations

import logging
import os
import signal
import sys
from typing import Protocol, runtime_checkable

from droidcast.shared.exceptions import CommandError
from droidcast.shared.process import run_command

logger = logging.getLogger(__name__)


@runtime_checkable
class ProcessTerminator(Protocol):
    """Ends processes the way the host platform expects."""

    async def terminate(self, pid: int) -> None:
        """Ask process ``pid`` to exit gracefully. Never raises."""
        ...

    async def kill_by_name(self, name: str) -> None:
        """Forcefully end every process whose image is named ``name``. Never raises."""
        ...


class PosixTerminator:
    """SIGTERM for single processes, ``pkill`` for whole process names."""

    async def terminate(self, pid: int) -> None:
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            logger.debug("pid %d already gone", pid)
        except PermissionError as exc:
            logger.warning("not allowed to signal pid %d: %s", pid, exc)

    async def kill_by_name(self, name: str) -> None:
        try:
            await run_command("pkill", name)
        except CommandError as exc:
            logger.warning("pkill %s failed: %s", name, exc)


class WindowsTerminator:
    """``taskkill`` by PID, or by image name with ``/F /T`` for the whole tree."""

    async def terminate(self, pid: int) -> None:
        try:
            await run_command("taskkill", "/PID", str(pid))
        except CommandError as exc:
            logger.warning("taskkill /PID %d failed: %s", pid, exc)

    async def kill_by_name(self, name: str) -> None:
        image = name if name.lower().endswith(".exe") else f"{name}.exe"
        try:
            await run_command("taskkill", "/F", "/IM", image, "/T")
        except CommandError as exc:
            logger.warning("taskkill /IM %s failed: %s", image, exc)


def select_terminator(platform: str = sys.platform) -> ProcessTerminator:
    """Pick the terminator for ``platform`` (a ``sys.platform`` value)."""
    if platform == "win32":
        return WindowsTerminator()
    return PosixTerminator()
