"""Host platform detection for picking the right scrcpy release archive."""

from __future__ import annotations

import platform as _platform
import sys
from dataclasses import dataclass

from droidcast.shared.enums import ArchiveFormat
from droidcast.shared.exceptions import UnsupportedPlatformError

_X86_64 = {"x86_64", "amd64", "x64"}
_ARM64 = {"arm64", "aarch64"}


@dataclass(frozen=True, slots=True)
class PlatformTarget:
    """Release naming tags for one host.

    ``arch_tag`` is the fragment release asset names contain, e.g.
    ``scrcpy-linux-x86_64-v3.1.tar.gz``.
    """

    os_tag: str
    arch_tag: str
    archive: ArchiveFormat

    @property
    def extension(self) -> str:
        return self.archive.value


def detect_platform(system: str | None = None, machine: str | None = None) -> PlatformTarget:
    """Map ``sys.platform`` / ``platform.machine()`` to release tags.

    Raises:
        UnsupportedPlatformError: If scrcpy publishes nothing for this host.
    """
    system = system if system is not None else sys.platform
    machine = (machine if machine is not None else _platform.machine()).lower()

    if system == "win32":
        tag = "win64" if machine in _X86_64 else "win32"
        return PlatformTarget(os_tag=tag, arch_tag=tag, archive=ArchiveFormat.ZIP)
    if system.startswith("linux"):
        if machine not in _X86_64:
            raise UnsupportedPlatformError(f"no scrcpy build for linux/{machine}")
        return PlatformTarget(os_tag="linux", arch_tag="linux-x86_64", archive=ArchiveFormat.TAR_GZ)
    if system == "darwin":
        arch = "macos-aarch64" if machine in _ARM64 else "macos-x86_64"
        return PlatformTarget(os_tag="macos", arch_tag=arch, archive=ArchiveFormat.TAR_GZ)
    raise UnsupportedPlatformError(f"Unsupported OS for auto-download: {system}")
