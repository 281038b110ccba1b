"""Tests for SessionSupervisor."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from droidcast.binaries.resolver import BinaryResolver
from droidcast.session.supervisor import SessionSupervisor
from droidcast.shared.enums import SessionMode
from droidcast.shared.exceptions import BinaryNotFoundError, SessionError
from droidcast.shared.models import SessionConfig
from droidcast.shared.process import CommandOutput


@pytest.fixture
def supervisor(resolver: BinaryResolver, notifier, terminator) -> SessionSupervisor:
    return SessionSupervisor(
        resolver=resolver,
        notifier=notifier,
        terminator=terminator,
        poll_interval=0.01,
        stop_grace=0,
        videos_dir=lambda: "/home/u/Videos",
    )


async def _settle(supervisor: SessionSupervisor, rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0.02)


class TestStart:
    async def test_spawns_scrcpy_and_reports_running(self, supervisor, notifier, make_process) -> None:
        proc = make_process(pid=100, stderr=b"INFO: Renderer: opengl\nINFO: Device: Pixel\n")

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as mock_exec:
            await supervisor.start(SessionConfig(device="emulator-5554", bitrate=8))

        args = mock_exec.call_args[0]
        assert args[0] == "scrcpy"
        assert args[1:4] == ("-s", "emulator-5554", "--video-codec=h264")
        assert "emulator-5554" in supervisor.registry
        assert notifier.statuses() == [{"device": "emulator-5554", "running": True}]

        proc.exit(0)
        await supervisor.wait_closed()

        assert "INFO: Renderer: opengl" in notifier.lines()
        assert "INFO: Device: Pixel" in notifier.lines()

    async def test_logs_session_summary(self, supervisor, notifier, make_process) -> None:
        proc = make_process()
        config = SessionConfig(device="d", session_mode=SessionMode.CAMERA, record=True)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            await supervisor.start(config)

        lines = notifier.lines()
        assert "[SYSTEM] Starting Camera Mode session..." in lines
        assert "[SYSTEM] Target: d | Config: Original @ 8Mbps, 60fps" in lines
        assert "[SYSTEM] Recording enabled -> output to Videos" in lines
        assert any(line.startswith("> scrcpy -s d --video-codec=h264") for line in lines)
        assert any("--record=/home/u/Videos/scrcpy_d_" in line for line in lines)

        proc.exit(0)
        await supervisor.wait_closed()

    async def test_spawn_failure_raises_session_error(self, supervisor, notifier) -> None:
        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=FileNotFoundError("scrcpy"))):
            with pytest.raises(SessionError, match="failed to start scrcpy"):
                await supervisor.start(SessionConfig(device="d"))

        assert len(supervisor.registry) == 0
        assert notifier.statuses() == []

    async def test_restart_same_device_keeps_one_entry(self, supervisor, terminator, make_process) -> None:
        first = make_process(pid=1)
        second = make_process(pid=2)
        terminator.processes = {1: first, 2: second}

        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=[first, second])):
            await supervisor.start(SessionConfig(device="d"))
            await supervisor.start(SessionConfig(device="d"))

        await _settle(supervisor)

        assert len(supervisor.registry) == 1
        current = await supervisor.registry.get("d")
        assert current is not None and current.process is second
        assert terminator.terminated == [1]

        second.exit(0)
        await supervisor.wait_closed()

    async def test_concurrent_starts_pair_every_running_status(
        self, supervisor, notifier, terminator, make_process
    ) -> None:
        procs = [make_process(pid=pid) for pid in (1, 2, 3)]
        terminator.processes = {proc.pid: proc for proc in procs}
        pending = iter(procs)

        async def _slow_spawn(*args, **kwargs):
            await asyncio.sleep(0.01)
            return next(pending)

        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=_slow_spawn)):
            await asyncio.gather(*(supervisor.start(SessionConfig(device="d")) for _ in range(3)))

        await _settle(supervisor)

        assert len(supervisor.registry) == 1
        running = [status["running"] for status in notifier.statuses()]
        assert running.count(True) == 3
        assert running.count(False) == 2
        assert running[-1] is True

        current = await supervisor.registry.get("d")
        current.process.exit(0)
        await supervisor.wait_closed()


class TestSupervision:
    async def test_exit_removes_entry_and_reports_stopped_once(self, supervisor, notifier, make_process) -> None:
        proc = make_process()

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            await supervisor.start(SessionConfig(device="d"))

        proc.exit(2)
        await supervisor.wait_closed()

        assert "d" not in supervisor.registry
        assert "[SYSTEM] Scrcpy process exited with status: 2" in notifier.lines()
        assert notifier.statuses() == [
            {"device": "d", "running": True},
            {"device": "d", "running": False},
        ]

    async def test_watch_keeps_polling_while_running(self, supervisor, notifier, make_process) -> None:
        proc = make_process()

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            await supervisor.start(SessionConfig(device="d"))

        await _settle(supervisor)

        assert "d" in supervisor.registry
        assert notifier.statuses() == [{"device": "d", "running": True}]

        proc.exit(0)
        await supervisor.wait_closed()


class TestStop:
    async def test_stop_unknown_device_is_noop(self, supervisor, terminator, notifier) -> None:
        await supervisor.stop("nope")

        assert terminator.terminated == []
        assert notifier.events == []

    async def test_stop_terminates_and_watch_reports_stopped(
        self, supervisor, terminator, notifier, make_process
    ) -> None:
        proc = make_process(pid=77)
        terminator.processes = {77: proc}

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            await supervisor.start(SessionConfig(device="d"))

        await supervisor.stop("d")
        await supervisor.wait_closed()

        assert terminator.terminated == [77]
        assert "d" not in supervisor.registry
        assert notifier.statuses()[-1] == {"device": "d", "running": False}
        assert notifier.statuses().count({"device": "d", "running": False}) == 1

    async def test_stop_without_pid_kills(self, supervisor, terminator, make_process) -> None:
        proc = make_process(pid=None)

        with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
            await supervisor.start(SessionConfig(device="d"))

        await supervisor.stop("d")
        await supervisor.wait_closed()

        assert proc.killed is True
        assert terminator.terminated == []

    async def test_stop_all(self, supervisor, terminator, make_process) -> None:
        procs = {1: make_process(pid=1), 2: make_process(pid=2)}
        terminator.processes = procs

        with patch("asyncio.create_subprocess_exec", AsyncMock(side_effect=[procs[1], procs[2]])):
            await supervisor.start(SessionConfig(device="a"))
            await supervisor.start(SessionConfig(device="b"))

        await supervisor.stop_all()
        await supervisor.wait_closed()

        assert sorted(terminator.terminated) == [1, 2]
        assert await supervisor.running_devices() == []


class TestKillBridgeStack:
    async def test_kill_server_then_kill_by_name(self, supervisor, terminator, notifier) -> None:
        run = AsyncMock(return_value=CommandOutput(stdout="", stderr="", returncode=0))

        with patch("droidcast.session.supervisor.run_command", run):
            result = await supervisor.kill_bridge_stack()

        run.assert_awaited_once_with("adb", "kill-server")
        assert terminator.killed_names == ["adb"]
        assert result.success is True
        assert notifier.lines() == ["[SYSTEM] Terminating ADB stack...", "[SYSTEM] ADB Stack Terminated."]

    async def test_kill_by_name_runs_even_if_adb_missing(self, supervisor, terminator) -> None:
        run = AsyncMock(side_effect=BinaryNotFoundError("binary not found: adb"))

        with patch("droidcast.session.supervisor.run_command", run):
            result = await supervisor.kill_bridge_stack()

        assert terminator.killed_names == ["adb"]
        assert result.success is True
