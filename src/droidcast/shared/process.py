"""Async subprocess helpers shared by the bridge, supervisor and terminators."""

from __future__ import annotations

import asyncio
import logging
import subprocess
from dataclasses import dataclass
from typing import Any

from droidcast.shared.exceptions import BinaryNotFoundError, CommandError, CommandTimeoutError

logger = logging.getLogger(__name__)

# Keeps Windows from flashing a console window for every child; 0 elsewhere.
NO_WINDOW_FLAGS: int = getattr(subprocess, "CREATE_NO_WINDOW", 0)


@dataclass(frozen=True, slots=True)
class CommandOutput:
    """Captured result of a finished one-shot command."""

    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def spawn_kwargs() -> dict[str, Any]:
    """Extra keyword arguments every child process is created with."""
    if NO_WINDOW_FLAGS:
        return {"creationflags": NO_WINDOW_FLAGS}
    return {}


def _decode(data: bytes | None) -> str:
    return data.decode(errors="replace") if data else ""


async def run_command(program: str, *args: str, timeout: float | None = None) -> CommandOutput:
    """Run ``program args...`` to completion and capture its output.

    Output is decoded but not stripped; callers decide how to trim.

    Raises:
        BinaryNotFoundError: If ``program`` cannot be found.
        CommandTimeoutError: If the command outlives ``timeout`` seconds.
        CommandError: If the process cannot be spawned for any other reason.
    """
    cmd = [program, *args]
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            **spawn_kwargs(),
        )
    except FileNotFoundError as exc:
        raise BinaryNotFoundError(f"binary not found: {program}") from exc
    except OSError as exc:
        raise CommandError(f"failed to start {program}: {exc}") from exc

    try:
        stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
        raise CommandTimeoutError(f"command timed out after {timeout}s: {' '.join(cmd)}") from exc

    logger.debug("%s exited with rc=%s", " ".join(cmd), proc.returncode)
    return CommandOutput(
        stdout=_decode(stdout_b),
        stderr=_decode(stderr_b),
        returncode=proc.returncode or 0,
    )
