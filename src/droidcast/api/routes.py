"""API routes for the droidcast command surface."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request, Response, WebSocket, WebSocketDisconnect
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from droidcast.acquisition.pipeline import AcquisitionPipeline
from droidcast.binaries.resolver import default_videos_dir
from droidcast.bridge.adb import DeviceBridge
from droidcast.session.supervisor import SessionSupervisor
from droidcast.shared.events import EventBus
from droidcast.shared.exceptions import AcquisitionError, CommandError, SessionError
from droidcast.shared.models import (
    BinaryCheck,
    CommandResult,
    DeviceList,
    Event,
    MdnsServiceList,
    RawCommandResult,
    SessionConfig,
    ShellResult,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class _Body(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    custom_path: str | None = None


class ConnectBody(_Body):
    ip: str


class PairBody(_Body):
    ip: str
    code: str


class ShellBody(_Body):
    command: str


class TerminalBody(_Body):
    device: str | None = None
    cmd: str


class FileBody(_Body):
    file_path: str


class OptionsBody(_Body):
    flag: str


def _bridge(request: Request) -> DeviceBridge:
    return request.app.state.bridge


def _supervisor(request: Request) -> SessionSupervisor:
    return request.app.state.supervisor


# ── Binaries & devices ─────────────────────────────────────────


@router.post("/binary/check")
async def check_binary(request: Request, body: _Body | None = None) -> BinaryCheck:
    return await _bridge(request).check_binary(body.custom_path if body else None)


@router.get("/devices")
async def list_devices(request: Request, custom_path: str | None = Query(None, alias="customPath")) -> DeviceList:
    return await _bridge(request).list_devices(custom_path)


@router.get("/devices/mdns")
async def list_mdns_services(
    request: Request, custom_path: str | None = Query(None, alias="customPath")
) -> MdnsServiceList:
    return await _bridge(request).list_mdns_services(custom_path)


@router.post("/devices/connect")
async def connect(body: ConnectBody, request: Request) -> CommandResult:
    try:
        return await _bridge(request).connect(body.ip, body.custom_path)
    except CommandError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.post("/devices/pair")
async def pair(body: PairBody, request: Request) -> CommandResult:
    try:
        return await _bridge(request).pair(body.ip, body.code, body.custom_path)
    except CommandError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.post("/devices/{device}/shell")
async def shell(device: str, body: ShellBody, request: Request) -> ShellResult:
    return await _bridge(request).shell(device, body.command, body.custom_path)


@router.post("/devices/{device}/push")
async def push(device: str, body: FileBody, request: Request) -> CommandResult:
    return await _bridge(request).push(device, body.file_path, body.custom_path)


@router.post("/devices/{device}/install")
async def install(device: str, body: FileBody, request: Request) -> CommandResult:
    return await _bridge(request).install(device, body.file_path, body.custom_path)


@router.post("/devices/{device}/options")
async def list_options(device: str, body: OptionsBody, request: Request) -> ShellResult:
    return await _bridge(request).list_options(device, body.flag, body.custom_path)


@router.post("/terminal")
async def run_terminal_command(body: TerminalBody, request: Request) -> RawCommandResult:
    return await _bridge(request).run_raw(body.device, body.cmd, body.custom_path)


@router.post("/bridge/kill")
async def kill_bridge_stack(request: Request, body: _Body | None = None) -> CommandResult:
    return await _supervisor(request).kill_bridge_stack(body.custom_path if body else None)


@router.get("/videos-dir")
async def videos_dir() -> dict[str, str | None]:
    return {"path": default_videos_dir()}


# ── Sessions ───────────────────────────────────────────────────


@router.post("/sessions", status_code=204)
async def start_session(config: SessionConfig, request: Request) -> Response:
    try:
        await _supervisor(request).start(config)
    except SessionError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return Response(status_code=204)


@router.delete("/sessions/{device}", status_code=204)
async def stop_session(device: str, request: Request) -> Response:
    await _supervisor(request).stop(device)
    return Response(status_code=204)


@router.get("/sessions")
async def list_sessions(request: Request) -> dict[str, list[str]]:
    return {"devices": await _supervisor(request).running_devices()}


# ── Acquisition ────────────────────────────────────────────────


def _consume_result(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None and not isinstance(exc, AcquisitionError):
        logger.error("acquisition task crashed: %s", exc, exc_info=exc)


@router.post("/acquisition", status_code=202)
async def acquire_binary(request: Request) -> dict[str, bool]:
    """Start downloading scrcpy in the background; progress arrives on ``/ws``."""
    state = request.app.state
    current: asyncio.Task[Any] | None = state.acquisition_task
    if current is not None and not current.done():
        raise HTTPException(status_code=409, detail="acquisition already running")

    pipeline = AcquisitionPipeline.from_settings(state.settings, state.bus)
    task = asyncio.create_task(pipeline.run(), name="acquire-scrcpy")
    task.add_done_callback(_consume_result)
    state.acquisition_task = task
    return {"accepted": True}


# ── Notifications ──────────────────────────────────────────────


@router.websocket("/ws")
async def events(websocket: WebSocket) -> None:
    """Stream every notification as ``{"event": ..., "payload": ...}``."""
    bus: EventBus = websocket.app.state.bus
    async with bus.subscribe() as queue:
        await websocket.accept()
        logger.info("event subscriber connected")
        sender = asyncio.create_task(_pump(websocket, queue))
        try:
            # Inbound messages are ignored; receiving is how a disconnect shows up.
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("event subscriber disconnected")
        finally:
            sender.cancel()
            (outcome,) = await asyncio.gather(sender, return_exceptions=True)
            if isinstance(outcome, Exception):
                logger.debug("event sender stopped: %s", outcome)


async def _pump(websocket: WebSocket, queue: asyncio.Queue[Event]) -> None:
    while True:
        event = await queue.get()
        await websocket.send_json(event.to_wire())


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        Status dictionary
    """
    return {"status": "ok"}
