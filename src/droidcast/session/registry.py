"""Lock-protected registry of running scrcpy sessions keyed by device id."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field

_session_ids = itertools.count(1)


@dataclass(eq=False)
class SessionHandle:
    """Owned handle to one running scrcpy child process.

    Compared by identity: a restarted device gets a new handle, so a stale
    supervisor can tell its session has been replaced.
    """

    device: str
    process: asyncio.subprocess.Process
    session_id: int = field(default_factory=lambda: next(_session_ids))
    tasks: list[asyncio.Task[None]] = field(default_factory=list)

    @property
    def pid(self) -> int | None:
        return self.process.pid

    def returncode(self) -> int | None:
        """Non-blocking liveness check; ``None`` while still running."""
        return self.process.returncode


class ProcessRegistry:
    """At most one live session per device id.

    The lock only guards the in-memory map; it is never held while spawning,
    killing or sleeping.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._entries: dict[str, SessionHandle] = {}

    async def insert(self, handle: SessionHandle) -> SessionHandle | None:
        """Insert ``handle`` and return the entry it displaced, if any."""
        async with self._lock:
            previous = self._entries.get(handle.device)
            self._entries[handle.device] = handle
            return previous

    async def take(self, device: str) -> SessionHandle | None:
        """Remove and return the entry for ``device``."""
        async with self._lock:
            return self._entries.pop(device, None)

    async def discard(self, handle: SessionHandle) -> bool:
        """Remove ``handle`` only if it is still the current entry for its device."""
        async with self._lock:
            if self._entries.get(handle.device) is handle:
                del self._entries[handle.device]
                return True
            return False

    async def get(self, device: str) -> SessionHandle | None:
        async with self._lock:
            return self._entries.get(device)

    async def devices(self) -> list[str]:
        async with self._lock:
            return sorted(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, device: object) -> bool:
        return device in self._entries
