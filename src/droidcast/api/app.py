"""FastAPI application factory for the droidcast command surface."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from droidcast.api.routes import router
from droidcast.binaries.resolver import BinaryResolver
from droidcast.bridge.adb import DeviceBridge
from droidcast.config import Settings, get_settings
from droidcast.session.supervisor import SessionSupervisor
from droidcast.shared.events import EventBus

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Stop every running session and pending acquisition on shutdown."""
    try:
        yield
    finally:
        task: asyncio.Task[object] | None = app.state.acquisition_task
        if task is not None and not task.done():
            task.cancel()
        supervisor: SessionSupervisor = app.state.supervisor
        await supervisor.stop_all()
        logger.info("droidcast command surface stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    bus = EventBus()
    resolver = BinaryResolver(bin_dir_name=settings.bin_dir_name)

    app = FastAPI(title="droidcast", lifespan=lifespan)
    app.state.settings = settings
    app.state.bus = bus
    app.state.resolver = resolver
    app.state.bridge = DeviceBridge(
        resolver=resolver,
        notifier=bus,
        scrcpy_binary=settings.scrcpy_binary,
        adb_binary=settings.adb_binary,
        connect_timeout=settings.connect_timeout_seconds,
        command_timeout=settings.command_timeout_seconds,
        push_remote_dir=settings.push_remote_dir,
    )
    app.state.supervisor = SessionSupervisor(
        resolver=resolver,
        notifier=bus,
        scrcpy_binary=settings.scrcpy_binary,
        adb_binary=settings.adb_binary,
        poll_interval=settings.poll_interval_seconds,
        stop_grace=settings.stop_grace_seconds,
    )
    app.state.acquisition_task = None
    app.include_router(router)
    return app


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port, log_level="info")


if __name__ == "__main__":
    main()
