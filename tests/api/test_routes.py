"""Tests for the droidcast API routes."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from droidcast.api.app import create_app
from droidcast.api.routes import events
from droidcast.shared.events import log_line
from droidcast.shared.exceptions import BinaryNotFoundError, SessionError
from droidcast.shared.models import BinaryCheck, CommandResult, DeviceList, RawCommandResult, SessionConfig, ShellResult


@pytest.fixture
def app(settings):
    """Create a test FastAPI application."""
    return create_app(settings)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def test_health_returns_ok(client) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestDeviceRoutes:
    async def test_list_devices_passes_custom_path(self, app, client) -> None:
        app.state.bridge = AsyncMock()
        app.state.bridge.list_devices.return_value = DeviceList(error=False, devices=["emulator-5554"])

        response = await client.get("/devices", params={"customPath": "/opt/scrcpy"})

        assert response.status_code == 200
        assert response.json()["devices"] == ["emulator-5554"]
        app.state.bridge.list_devices.assert_awaited_once_with("/opt/scrcpy")

    async def test_check_binary_without_body(self, app, client) -> None:
        app.state.bridge = AsyncMock()
        app.state.bridge.check_binary.return_value = BinaryCheck(found=True, message="scrcpy 3.1")

        response = await client.post("/binary/check")

        assert response.status_code == 200
        assert response.json() == {"found": True, "message": "scrcpy 3.1"}
        app.state.bridge.check_binary.assert_awaited_once_with(None)

    async def test_connect(self, app, client) -> None:
        app.state.bridge = AsyncMock()
        app.state.bridge.connect.return_value = CommandResult(success=True, message="connected to 10.0.0.1:5555")

        response = await client.post("/devices/connect", json={"ip": "10.0.0.1:5555", "customPath": "/opt"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "connected to 10.0.0.1:5555"}
        app.state.bridge.connect.assert_awaited_once_with("10.0.0.1:5555", "/opt")

    async def test_connect_missing_adb_is_bad_gateway(self, app, client) -> None:
        app.state.bridge = AsyncMock()
        app.state.bridge.connect.side_effect = BinaryNotFoundError("binary not found: adb")

        response = await client.post("/devices/connect", json={"ip": "10.0.0.1"})

        assert response.status_code == 502
        assert response.json()["detail"] == "binary not found: adb"

    async def test_shell(self, app, client) -> None:
        app.state.bridge = AsyncMock()
        app.state.bridge.shell.return_value = ShellResult(success=True, output="ok")

        response = await client.post("/devices/d1/shell", json={"command": "getprop ro.product.model"})

        assert response.status_code == 200
        assert response.json()["output"] == "ok"
        app.state.bridge.shell.assert_awaited_once_with("d1", "getprop ro.product.model", None)

    async def test_push_uses_camel_case_body(self, app, client) -> None:
        app.state.bridge = AsyncMock()
        app.state.bridge.push.return_value = CommandResult(success=True, message="1 file pushed")

        response = await client.post("/devices/d1/push", json={"filePath": "/tmp/a.mp4"})

        assert response.status_code == 200
        app.state.bridge.push.assert_awaited_once_with("d1", "/tmp/a.mp4", None)

    async def test_terminal(self, app, client) -> None:
        app.state.bridge = AsyncMock()
        app.state.bridge.run_raw.return_value = RawCommandResult(
            success=True, binary="adb", stdout="List of devices attached\n", stderr=""
        )

        response = await client.post("/terminal", json={"device": "d1", "cmd": "adb devices"})

        assert response.status_code == 200
        assert response.json()["binary"] == "adb"
        app.state.bridge.run_raw.assert_awaited_once_with("d1", "adb devices", None)

    async def test_kill_bridge_stack(self, app, client) -> None:
        app.state.supervisor = AsyncMock()
        app.state.supervisor.kill_bridge_stack.return_value = CommandResult(
            success=True, message="ADB Stack Terminated"
        )

        response = await client.post("/bridge/kill")

        assert response.status_code == 200
        assert response.json()["message"] == "ADB Stack Terminated"


class TestSessionRoutes:
    async def test_start_session(self, app, client) -> None:
        app.state.supervisor = AsyncMock()

        response = await client.post(
            "/sessions",
            json={"device": "d1", "sessionMode": "camera", "cameraFacing": "back", "bitrate": 4},
        )

        assert response.status_code == 204
        config = app.state.supervisor.start.await_args.args[0]
        assert isinstance(config, SessionConfig)
        assert config.camera_facing == "back"
        assert config.bitrate == 4

    async def test_start_session_invalid_mode(self, app, client) -> None:
        app.state.supervisor = AsyncMock()

        response = await client.post("/sessions", json={"device": "d1", "sessionMode": "projector"})

        assert response.status_code == 422
        app.state.supervisor.start.assert_not_awaited()

    async def test_start_session_spawn_failure(self, app, client) -> None:
        app.state.supervisor = AsyncMock()
        app.state.supervisor.start.side_effect = SessionError("failed to start scrcpy: not found")

        response = await client.post("/sessions", json={"device": "d1"})

        assert response.status_code == 500
        assert "failed to start scrcpy" in response.json()["detail"]

    async def test_stop_and_list(self, app, client) -> None:
        app.state.supervisor = AsyncMock()
        app.state.supervisor.running_devices.return_value = ["d2"]

        stop = await client.delete("/sessions/d1")
        listing = await client.get("/sessions")

        assert stop.status_code == 204
        app.state.supervisor.stop.assert_awaited_once_with("d1")
        assert listing.json() == {"devices": ["d2"]}


class TestAcquisitionRoute:
    async def test_rejects_concurrent_runs(self, app, client) -> None:
        release = asyncio.Event()

        async def _run() -> None:
            await release.wait()

        pipeline = MagicMock()
        pipeline.run = _run
        with patch("droidcast.api.routes.AcquisitionPipeline.from_settings", return_value=pipeline):
            first = await client.post("/acquisition")
            second = await client.post("/acquisition")

        assert first.status_code == 202
        assert first.json() == {"accepted": True}
        assert second.status_code == 409

        release.set()
        await app.state.acquisition_task
        assert app.state.acquisition_task.done()


async def test_websocket_retrieves_failed_sender(app, caplog: pytest.LogCaptureFixture) -> None:
    bus = app.state.bus
    websocket = AsyncMock()
    websocket.app = app
    websocket.send_json.side_effect = RuntimeError("socket closed")

    async def _receive() -> str:
        log_line(bus, "hello")
        for _ in range(5):
            await asyncio.sleep(0)
        raise WebSocketDisconnect()

    websocket.receive_text.side_effect = _receive

    with caplog.at_level(logging.DEBUG, logger="droidcast.api.routes"):
        await events(websocket)

    websocket.send_json.assert_awaited_once_with({"event": "scrcpy-log", "payload": "hello"})
    assert "event sender stopped: socket closed" in caplog.text
    assert bus.subscriber_count == 0


def test_websocket_streams_notifications(settings) -> None:
    app = create_app(settings)
    proc = AsyncMock()
    proc.communicate.return_value = (b"connected to 10.0.0.1:5555\n", b"")
    proc.returncode = 0

    with TestClient(app) as client, client.websocket_connect("/ws") as ws:
        with patch("asyncio.create_subprocess_exec", return_value=proc):
            response = client.post("/devices/connect", json={"ip": "10.0.0.1:5555"})

        assert response.json()["success"] is True
        assert ws.receive_json() == {
            "event": "scrcpy-log",
            "payload": "[SYSTEM] Attempting wireless connection to 10.0.0.1:5555...",
        }
        assert ws.receive_json() == {"event": "scrcpy-log", "payload": "[ADB] connected to 10.0.0.1:5555"}
