"""Centralised configuration via Pydantic Settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide configuration loaded from environment variables."""

    model_config = {"env_prefix": "DROIDCAST_", "frozen": True}

    # Binaries
    bin_dir_name: str = "scrcpy-bin"
    scrcpy_binary: str = "scrcpy"
    adb_binary: str = "adb"

    # Session supervision
    poll_interval_seconds: float = 0.5
    stop_grace_seconds: float = 0.5

    # Device bridge
    connect_timeout_seconds: float = 5.0
    # None means one-shot commands may run for as long as they need.
    command_timeout_seconds: float | None = None
    push_remote_dir: str = "/sdcard/Download/"

    # Acquisition
    release_api_url: str = "https://api.github.com/repos/Genymobile/scrcpy/releases/latest"
    release_latest_url: str = "https://github.com/Genymobile/scrcpy/releases/latest"
    release_download_base: str = "https://github.com/Genymobile/scrcpy/releases/download"
    http_user_agent: str = "ScrcpyGui-Downloader"
    http_timeout_seconds: float = 30.0
    download_chunk_size: int = 65_536
    # Empty means "next to the running application"
    install_root: str = ""

    # Command surface
    api_host: str = "127.0.0.1"
    api_port: int = 8765
    log_level: str = "INFO"


def get_settings() -> Settings:
    """Load settings from the environment."""
    return Settings()
