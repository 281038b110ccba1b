"""Spawning, supervising and stopping scrcpy sessions per device."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from droidcast.binaries.resolver import BinaryResolver, default_videos_dir
from droidcast.session.args import build_scrcpy_args, describe_session
from droidcast.session.registry import ProcessRegistry, SessionHandle
from droidcast.session.terminator import ProcessTerminator, select_terminator
from droidcast.shared.events import Notifier, log_line, session_status
from droidcast.shared.exceptions import CommandError, SessionError
from droidcast.shared.models import CommandResult, SessionConfig
from droidcast.shared.process import run_command, spawn_kwargs

logger = logging.getLogger(__name__)


class SessionSupervisor:
    """Owns the process registry and every background task it spawns.

    Per device the lifecycle is ``absent → spawning → running → (exited |
    stopped) → absent``. A dedicated watch task per session polls liveness
    and publishes the terminal ``running: false`` status. The one exception
    is a session displaced by a concurrent start for the same device, which
    is reported stopped by the start that replaced it.
    """

    def __init__(
        self,
        *,
        resolver: BinaryResolver,
        notifier: Notifier,
        registry: ProcessRegistry | None = None,
        terminator: ProcessTerminator | None = None,
        scrcpy_binary: str = "scrcpy",
        adb_binary: str = "adb",
        poll_interval: float = 0.5,
        stop_grace: float = 0.5,
        videos_dir: Callable[[], str | None] = default_videos_dir,
    ) -> None:
        self._resolver = resolver
        self._notifier = notifier
        self._registry = registry or ProcessRegistry()
        self._terminator = terminator or select_terminator()
        self._scrcpy_binary = scrcpy_binary
        self._adb_binary = adb_binary
        self._poll_interval = poll_interval
        self._stop_grace = stop_grace
        self._videos_dir = videos_dir
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def registry(self) -> ProcessRegistry:
        return self._registry

    async def running_devices(self) -> list[str]:
        return await self._registry.devices()

    # ── Start ──────────────────────────────────────────────────

    async def start(self, config: SessionConfig) -> None:
        """Start a scrcpy session for ``config.device``.

        A session already running for the same device is stopped first.

        Raises:
            SessionError: If the scrcpy process cannot be spawned.
        """
        fallback_dir = None
        if config.record and not (config.record_path or "").strip():
            fallback_dir = self._videos_dir()
        args = build_scrcpy_args(config, fallback_dir)
        exe_path = self._resolver.resolve(self._scrcpy_binary, config.scrcpy_path)

        await self.stop(config.device)

        log_line(self._notifier, f"[SYSTEM] Starting {config.session_mode.label} session...")
        log_line(self._notifier, f"[SYSTEM] Target: {describe_session(config)}")
        if config.record:
            target = (config.record_path or "").strip() or "Videos"
            log_line(self._notifier, f"[SYSTEM] Recording enabled -> output to {target}")
        log_line(self._notifier, f"> scrcpy {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                exe_path,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                **spawn_kwargs(),
            )
        except OSError as exc:
            logger.error("failed to spawn %s for %s: %s", exe_path, config.device, exc)
            raise SessionError(f"failed to start scrcpy: {exc}") from exc

        handle = SessionHandle(device=config.device, process=process)
        handle.tasks.append(self._spawn(self._forward_lines(process.stdout), f"stdout:{config.device}"))
        handle.tasks.append(self._spawn(self._forward_lines(process.stderr), f"stderr:{config.device}"))

        displaced = await self._registry.insert(handle)
        if displaced is not None:
            # A concurrent start for the same device won the race to spawn.
            logger.warning("replacing session %d for %s", displaced.session_id, config.device)
            await self._shutdown(displaced)
            # Its watch task now sees a newer handle and stays silent.
            session_status(self._notifier, config.device, False)

        logger.info("session %d started for %s (pid=%s)", handle.session_id, config.device, handle.pid)
        session_status(self._notifier, config.device, True)
        handle.tasks.append(self._spawn(self._watch(handle), f"watch:{config.device}"))

    # ── Stop ───────────────────────────────────────────────────

    async def stop(self, device: str) -> None:
        """Stop the session for ``device``; a no-op when none is running.

        Returns after a short grace period, not after process exit. The
        session's watch task publishes the final status.
        """
        handle = await self._registry.take(device)
        if handle is None:
            return
        logger.info("stopping session %d for %s", handle.session_id, device)
        await self._shutdown(handle)

    async def stop_all(self) -> None:
        for device in await self._registry.devices():
            await self.stop(device)

    async def _shutdown(self, handle: SessionHandle) -> None:
        pid = handle.pid
        if pid is None:
            try:
                handle.process.kill()
            except ProcessLookupError:
                pass
            return
        await self._terminator.terminate(pid)
        await asyncio.sleep(self._stop_grace)

    # ── Bulk termination ───────────────────────────────────────

    async def kill_bridge_stack(self, custom_dir: str | None = None) -> CommandResult:
        """Stop the adb server and kill any adb process left in the OS process table."""
        adb_path = self._resolver.resolve(self._adb_binary, custom_dir)
        log_line(self._notifier, "[SYSTEM] Terminating ADB stack...")
        try:
            await run_command(adb_path, "kill-server")
        except CommandError as exc:
            logger.warning("adb kill-server failed: %s", exc)
        await self._terminator.kill_by_name(self._adb_binary)
        log_line(self._notifier, "[SYSTEM] ADB Stack Terminated.")
        return CommandResult(success=True, message="ADB Stack Terminated")

    # ── Background tasks ───────────────────────────────────────

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _forward_lines(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        while True:
            try:
                raw = await stream.readline()
            except (OSError, ValueError) as exc:
                logger.debug("output stream closed: %s", exc)
                return
            if not raw:
                return
            log_line(self._notifier, raw.decode(errors="replace").rstrip("\r\n"))

    async def _watch(self, handle: SessionHandle) -> None:
        device = handle.device
        while True:
            await asyncio.sleep(self._poll_interval)

            current = await self._registry.get(device)
            if current is None:
                # Removed by stop(); publish in case nobody else did.
                session_status(self._notifier, device, False)
                return
            if current is not handle:
                # Replaced by a newer session which reports for itself.
                return

            returncode = handle.returncode()
            if returncode is None:
                continue

            await self._registry.discard(handle)
            logger.info("session %d for %s exited with rc=%d", handle.session_id, device, returncode)
            log_line(self._notifier, f"[SYSTEM] Scrcpy process exited with status: {returncode}")
            session_status(self._notifier, device, False)
            return

    async def wait_closed(self) -> None:
        """Wait for every background task spawned so far to finish."""
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)
