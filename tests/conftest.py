"""Shared pytest fixtures for the droidcast test suite."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from droidcast.binaries.resolver import BinaryResolver
from droidcast.config import Settings
from droidcast.shared.enums import EventName
from droidcast.shared.models import Event


class RecordingNotifier:
    """Notifier that keeps every published event for assertions."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def publish(self, event: Event) -> None:
        self.events.append(event)

    def lines(self) -> list[str]:
        return [e.payload for e in self.events if e.name is EventName.LOG]

    def statuses(self) -> list[dict]:
        return [e.to_wire()["payload"] for e in self.events if e.name is EventName.STATUS]

    def progress(self) -> list[int]:
        return [e.payload.percent for e in self.events if e.name is EventName.PROGRESS]


class FakeProcess:
    """Stand-in for ``asyncio.subprocess.Process`` with real stream readers."""

    def __init__(self, pid: int | None = 4242, stdout: bytes = b"", stderr: bytes = b"") -> None:
        self.pid = pid
        self.returncode: int | None = None
        self.killed = False
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.stdout.feed_data(stdout)
        self.stderr.feed_data(stderr)

    def close_streams(self) -> None:
        self.stdout.feed_eof()
        self.stderr.feed_eof()

    def exit(self, code: int = 0) -> None:
        self.returncode = code
        self.close_streams()

    def kill(self) -> None:
        self.killed = True
        self.exit(-9)


class FakeTerminator:
    """Records terminate/kill_by_name calls instead of touching real processes."""

    def __init__(self) -> None:
        self.terminated: list[int] = []
        self.killed_names: list[str] = []
        self.processes: dict[int, FakeProcess] = {}

    async def terminate(self, pid: int) -> None:
        self.terminated.append(pid)
        proc = self.processes.get(pid)
        if proc is not None:
            proc.exit(143)

    async def kill_by_name(self, name: str) -> None:
        self.killed_names.append(name)


@pytest.fixture()
def settings() -> Settings:
    """Return a Settings instance with test defaults."""
    return Settings(
        poll_interval_seconds=0.01,
        stop_grace_seconds=0,
        connect_timeout_seconds=5,
    )


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def resolver(tmp_path: Path) -> BinaryResolver:
    """Resolver whose local search dirs are empty, so names fall through to PATH."""
    return BinaryResolver(cwd=tmp_path / "cwd", install_dir=tmp_path / "app", exe_suffix="")


@pytest.fixture()
def terminator() -> FakeTerminator:
    return FakeTerminator()


@pytest.fixture()
def make_process() -> Callable[..., FakeProcess]:
    return FakeProcess
