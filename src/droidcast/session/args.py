"""Translate a ``SessionConfig`` into scrcpy command-line arguments.

Mode exclusivity is enforced by branch structure: a flag is only ever
appended, never removed, and each branch emits only the flags that are
meaningful for its mode.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from droidcast.shared.enums import SessionMode
from droidcast.shared.models import SessionConfig

DEFAULT_CODEC = "h264"
DEFAULT_VD_WIDTH = 1920
DEFAULT_VD_HEIGHT = 1080
DEFAULT_VD_DPI = 420
DESKTOP_VIDEO_BUFFER_MS = 100
HIGH_SPEED_CAMERA_FPS = 60


def is_network_device(device: str) -> bool:
    """``host:port`` / IP serials are network transports, USB serials are not."""
    return "." in device or ":" in device


def recording_filename(device: str, now: datetime) -> str:
    return f"scrcpy_{device.replace(':', '-')}_{now.strftime('%Y%m%d_%H%M%S')}.mkv"


def build_scrcpy_args(
    config: SessionConfig,
    video_dir_fallback: str | None = None,
    *,
    now: datetime | None = None,
) -> list[str]:
    """Build the scrcpy argument list for ``config``.

    Args:
        config: Session request.
        video_dir_fallback: Directory for recordings when ``record_path`` is blank.
        now: Timestamp embedded in recording file names (defaults to local now).

    Returns:
        Ordered argument list, flag/value pairs kept adjacent.
    """
    args: list[str] = []
    mode = config.session_mode

    if config.device:
        args += ["-s", config.device]
    args.append(f"--video-codec={config.codec or DEFAULT_CODEC}")

    otg_enabled = bool(config.otg_enabled)
    if mode is SessionMode.MIRROR and otg_enabled and config.otg_pure:
        if is_network_device(config.device):
            # --otg needs USB; emulate it over TCP with UHID input and no streams
            args += ["--no-video", "--no-audio", "--keyboard=uhid", "--mouse=uhid"]
        else:
            args.append("--otg")
        return args

    if config.bitrate is not None:
        args += ["--video-bit-rate", f"{config.bitrate}M"]
    if config.audio_enabled is False:
        args.append("--no-audio")
    if config.always_on_top:
        args.append("--always-on-top")
    if config.fullscreen:
        args.append("--fullscreen")
    if config.borderless:
        args.append("--window-borderless")
    if config.rotation is not None and config.rotation != "0":
        args += ["--orientation", config.rotation]

    # Camera streams have no device screen to keep awake or switch off.
    if mode is not SessionMode.CAMERA:
        if config.stay_awake:
            args.append("--stay-awake")
        if config.turn_off:
            args += ["--turn-screen-off", "--no-power-on"]

    if mode is SessionMode.CAMERA:
        args += _camera_args(config)
    elif mode is SessionMode.DESKTOP:
        width = config.vd_width or DEFAULT_VD_WIDTH
        height = config.vd_height or DEFAULT_VD_HEIGHT
        dpi = config.vd_dpi or DEFAULT_VD_DPI
        args.append(f"--new-display={width}x{height}/{dpi}")
        args.append(f"--video-buffer={DESKTOP_VIDEO_BUFFER_MS}")
    elif otg_enabled:
        args += ["--keyboard=uhid", "--mouse=uhid"]

    fps_flag = "--camera-fps" if mode is SessionMode.CAMERA else "--max-fps"
    if config.fps is not None:
        args += [fps_flag, str(config.fps)]
    elif mode is SessionMode.CAMERA and config.camera_high_speed:
        args += [fps_flag, str(HIGH_SPEED_CAMERA_FPS)]

    if config.res is not None and config.res != "0":
        args += ["--max-size", config.res]

    if config.record:
        target_dir = (config.record_path or "").strip() or video_dir_fallback or "."
        filename = recording_filename(config.device, now or datetime.now())
        args.append(f"--record={Path(target_dir) / filename}")

    return args


def _camera_args(config: SessionConfig) -> list[str]:
    args = ["--video-source=camera"]
    if config.camera_id:
        args.append(f"--camera-id={config.camera_id}")
    elif config.camera_facing:
        args.append(f"--camera-facing={config.camera_facing}")
    if config.camera_ar is not None and config.camera_ar != "0":
        args.append(f"--camera-ar={config.camera_ar}")
    if config.camera_high_speed:
        args.append("--camera-high-speed")
    return args


def describe_session(config: SessionConfig) -> str:
    """One-line human summary: ``<device> | Config: <res> @ <N>Mbps, <N>fps``."""
    res_label = "Original" if config.res in (None, "0") else config.res
    bitrate = config.bitrate if config.bitrate is not None else 8
    fps = config.fps if config.fps is not None else 60
    return f"{config.device} | Config: {res_label} @ {bitrate}Mbps, {fps}fps"
