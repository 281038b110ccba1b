"""Download-and-install pipeline for the scrcpy distribution."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from pathlib import Path

import aiofiles  # type: ignore[import-untyped]
import httpx

from droidcast.acquisition.installer import cleanup, extract_archive, install_distribution
from droidcast.acquisition.platform import PlatformTarget, detect_platform
from droidcast.acquisition.release import ReleaseDiscovery
from droidcast.binaries.resolver import default_install_root
from droidcast.config import Settings
from droidcast.shared.enums import AcquisitionStage, ArchiveFormat
from droidcast.shared.events import Notifier, acquisition_status, download_progress, log_line
from droidcast.shared.exceptions import AcquisitionError, DownloadError

logger = logging.getLogger(__name__)


class AcquisitionPipeline:
    """Downloads and installs scrcpy when it is missing.

    Stages run strictly in order (platform → discovery → download →
    extraction → install) and the first failure aborts the run. Temporaries
    are removed whether or not the install succeeded.
    """

    def __init__(
        self,
        *,
        notifier: Notifier,
        install_root: Path | None = None,
        bin_dir_name: str = "scrcpy-bin",
        api_url: str,
        latest_url: str,
        download_base: str,
        user_agent: str = "ScrcpyGui-Downloader",
        timeout: float = 30.0,
        chunk_size: int = 65_536,
        target: PlatformTarget | None = None,
    ) -> None:
        self._notifier = notifier
        self._install_root = install_root
        self._bin_dir_name = bin_dir_name
        self._api_url = api_url
        self._latest_url = latest_url
        self._download_base = download_base
        self._user_agent = user_agent
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._target = target

    @classmethod
    def from_settings(cls, settings: Settings, notifier: Notifier) -> AcquisitionPipeline:
        return cls(
            notifier=notifier,
            install_root=Path(settings.install_root) if settings.install_root else None,
            bin_dir_name=settings.bin_dir_name,
            api_url=settings.release_api_url,
            latest_url=settings.release_latest_url,
            download_base=settings.release_download_base,
            user_agent=settings.http_user_agent,
            timeout=settings.http_timeout_seconds,
            chunk_size=settings.download_chunk_size,
        )

    async def run(self) -> Path:
        """Acquire scrcpy and return the installation directory.

        Raises:
            AcquisitionError: If any stage fails. A failed-status
                notification is published before raising.
        """
        try:
            return await self._run()
        except AcquisitionError as exc:
            self._report_failure(exc)
            raise
        except OSError as exc:
            error = AcquisitionError(f"Filesystem error: {exc}")
            self._report_failure(error)
            raise error from exc

    def _report_failure(self, exc: AcquisitionError) -> None:
        logger.error("scrcpy acquisition failed: %s", exc)
        log_line(self._notifier, f"[SYSTEM] Download failed: {exc}")
        acquisition_status(self._notifier, AcquisitionStage.FAILED, False, str(exc))

    async def _run(self) -> Path:
        target = self._target or detect_platform()
        log_line(self._notifier, f"[SYSTEM] Detecting platform: {target.os_tag} ({target.arch_tag})")
        acquisition_status(
            self._notifier,
            AcquisitionStage.DOWNLOADING,
            True,
            f"Fetching latest {target.arch_tag} release...",
        )

        root = self._install_root or default_install_root()
        archive_path = root / f"scrcpy_temp{target.extension}"
        staging_dir = root / "temp_extract"
        install_dir = root / self._bin_dir_name

        async with httpx.AsyncClient(
            headers={"User-Agent": self._user_agent},
            timeout=self._timeout,
            follow_redirects=True,
        ) as client:
            discovery = ReleaseDiscovery(
                client,
                api_url=self._api_url,
                latest_url=self._latest_url,
                download_base=self._download_base,
                notifier=self._notifier,
            )
            asset = await discovery.discover(target)
            log_line(self._notifier, f"[SYSTEM] Found asset: {asset.name}")

            try:
                await self._download(client, asset.url, archive_path)
                log_line(self._notifier, "[SYSTEM] Download finished. Starting extraction...")
                acquisition_status(self._notifier, AcquisitionStage.DOWNLOADING, True, "Extracting binaries...")

                kind = "ZIP" if target.archive is ArchiveFormat.ZIP else "TAR.GZ"
                log_line(self._notifier, f"[SYSTEM] Decompressing {kind} archive...")
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(
                    None,
                    partial(extract_archive, archive_path, target.archive, staging_dir),
                )
                await loop.run_in_executor(None, partial(install_distribution, staging_dir, install_dir))
            finally:
                cleanup(staging_dir, archive_path)

        acquisition_status(self._notifier, AcquisitionStage.COMPLETE, True, str(install_dir))
        return install_dir

    async def _download(self, client: httpx.AsyncClient, url: str, dest: Path) -> None:
        """Stream ``url`` into ``dest``, publishing whole-percent progress.

        Raises:
            DownloadError: On HTTP or filesystem errors.
        """
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            async with client.stream("GET", url) as resp:
                resp.raise_for_status()
                total = int(resp.headers.get("Content-Length") or 0)
                log_line(self._notifier, f"[SYSTEM] Downloading: {total // 1024 // 1024} MB")

                downloaded = 0
                async with aiofiles.open(dest, "wb") as f:
                    async for chunk in resp.aiter_bytes(self._chunk_size):
                        await f.write(chunk)
                        downloaded += len(chunk)
                        if total > 0:
                            download_progress(self._notifier, min(100, downloaded * 100 // total))
        except httpx.HTTPError as exc:
            raise DownloadError(f"Failed to download {url}: {exc}") from exc
        except OSError as exc:
            raise DownloadError(f"Failed to write archive {dest}: {exc}") from exc
        logger.info("downloaded %s (%d bytes)", url, downloaded)
