"""Hierarchical exception types for droidcast."""

from __future__ import annotations


class DroidcastError(Exception):
    """Base exception for all droidcast errors."""


# ── Process execution ──────────────────────────────────────────


class CommandError(DroidcastError):
    """One-shot command could not be spawned or run."""


class BinaryNotFoundError(CommandError):
    """Executable could not be located or spawned."""


class CommandTimeoutError(CommandError):
    """One-shot command exceeded its wall-clock timeout."""


class CommandParseError(DroidcastError):
    """Free-form command line could not be tokenized."""


# ── Sessions ───────────────────────────────────────────────────


class SessionError(DroidcastError):
    """Mirroring session could not be started."""


# ── Acquisition ────────────────────────────────────────────────


class AcquisitionError(DroidcastError):
    """Binary acquisition pipeline failed."""


class UnsupportedPlatformError(AcquisitionError):
    """Host OS/architecture has no published distribution."""


class ReleaseDiscoveryError(AcquisitionError):
    """No download URL could be discovered for the latest release."""


class DownloadError(AcquisitionError):
    """Streaming the release archive failed."""


class ExtractionError(AcquisitionError):
    """Release archive could not be decompressed."""


class InstallError(AcquisitionError):
    """Extracted distribution could not be moved into place."""
