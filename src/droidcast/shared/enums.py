"""Domain enumerations used across all modules."""

from __future__ import annotations

from enum import Enum, unique


@unique
class SessionMode(str, Enum):
    """What a scrcpy session streams from the device."""

    MIRROR = "mirror"
    CAMERA = "camera"
    DESKTOP = "desktop"

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]


_MODE_LABELS = {
    SessionMode.MIRROR: "Screen Mirroring",
    SessionMode.CAMERA: "Camera Mode",
    SessionMode.DESKTOP: "Desktop Mode",
}


@unique
class EventName(str, Enum):
    """Notification channels published to the presentation layer."""

    LOG = "scrcpy-log"
    STATUS = "scrcpy-status"
    PROGRESS = "download-progress"


@unique
class AcquisitionStage(str, Enum):
    """``type`` values of acquisition status notifications."""

    DOWNLOADING = "downloading"
    COMPLETE = "download-complete"
    FAILED = "download-failed"


@unique
class ArchiveFormat(str, Enum):
    """Archive extensions published for scrcpy releases."""

    ZIP = ".zip"
    TAR_GZ = ".tar.gz"
