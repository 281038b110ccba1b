"""Frozen Pydantic domain models shared by all modules."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from droidcast.shared.enums import AcquisitionStage, EventName, SessionMode

# Presentation layer speaks camelCase; Python code uses snake_case.
_CAMEL = {"frozen": True, "alias_generator": to_camel, "populate_by_name": True}


class SessionConfig(BaseModel):
    """One mirroring/recording request for a single device.

    Optional toggles left as ``None`` are simply not emitted. Which toggles
    are meaningful depends on ``session_mode``; the rest are ignored.
    """

    model_config = _CAMEL

    device: str = ""
    session_mode: SessionMode = SessionMode.MIRROR

    # Video
    bitrate: int | None = Field(default=None, ge=0)
    fps: int | None = Field(default=None, ge=0)
    codec: str | None = None
    res: str | None = None
    rotation: str | None = None

    # Device control
    stay_awake: bool | None = None
    turn_off: bool | None = None
    audio_enabled: bool | None = None

    # Window
    always_on_top: bool | None = None
    fullscreen: bool | None = None
    borderless: bool | None = None

    # Recording
    record: bool | None = None
    record_path: str | None = None

    # Binary location override
    scrcpy_path: str | None = None

    # OTG pass-through
    otg_enabled: bool | None = None
    otg_pure: bool | None = None

    # Camera
    camera_facing: str | None = None
    camera_id: str | None = None
    camera_ar: str | None = None
    camera_high_speed: bool | None = None

    # Virtual display
    vd_width: int | None = Field(default=None, gt=0)
    vd_height: int | None = Field(default=None, gt=0)
    vd_dpi: int | None = Field(default=None, gt=0)


# ── Command results ────────────────────────────────────────────


class BinaryCheck(BaseModel):
    model_config = _CAMEL

    found: bool
    message: str


class DeviceList(BaseModel):
    model_config = _CAMEL

    error: bool
    devices: list[str] = Field(default_factory=list)
    message: str | None = None


class MdnsService(BaseModel):
    model_config = _CAMEL

    name: str
    service: str
    address: str


class MdnsServiceList(BaseModel):
    model_config = _CAMEL

    error: bool
    services: list[MdnsService] = Field(default_factory=list)
    message: str | None = None


class CommandResult(BaseModel):
    """Generic ``{success, message}`` outcome of a bridge command."""

    model_config = _CAMEL

    success: bool
    message: str = ""


class ShellResult(BaseModel):
    model_config = _CAMEL

    success: bool
    output: str = ""
    message: str | None = None


class RawCommandResult(BaseModel):
    """Outcome of a free-form terminal command."""

    model_config = _CAMEL

    success: bool
    binary: str | None = None
    stdout: str = ""
    stderr: str = ""
    message: str | None = None


class ReleaseAsset(BaseModel):
    """Download location of one release archive, discovered per acquisition run."""

    model_config = _CAMEL

    url: str
    name: str


# ── Notifications ──────────────────────────────────────────────


class SessionStatus(BaseModel):
    model_config = _CAMEL

    device: str
    running: bool


class AcquisitionStatus(BaseModel):
    model_config = _CAMEL

    type: AcquisitionStage
    success: bool
    message: str


class DownloadProgress(BaseModel):
    model_config = _CAMEL

    percent: int = Field(ge=0, le=100)


class Event(BaseModel):
    """A notification as delivered to subscribers."""

    model_config = {"frozen": True}

    name: EventName
    payload: Any

    def to_wire(self) -> dict[str, Any]:
        payload = self.payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(mode="json", by_alias=True)
        return {"event": self.name.value, "payload": payload}
