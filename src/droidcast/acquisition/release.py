"""Discovering the latest scrcpy release asset for a platform."""

from __future__ import annotations

import logging

import httpx

from droidcast.acquisition.platform import PlatformTarget
from droidcast.shared.events import NullNotifier, Notifier, log_line
from droidcast.shared.exceptions import ReleaseDiscoveryError
from droidcast.shared.models import ReleaseAsset

logger = logging.getLogger(__name__)

# GitHub API docs:
# https://docs.github.com/en/rest/releases/releases#get-the-latest-release


def pick_asset(release: dict, target: PlatformTarget) -> ReleaseAsset | None:
    """Find the asset whose name carries ``target``'s arch tag and extension."""
    assets = release.get("assets")
    if not isinstance(assets, list):
        return None
    for asset in assets:
        if not isinstance(asset, dict):
            continue
        name = str(asset.get("name") or "")
        if target.arch_tag in name and name.endswith(target.extension):
            url = str(asset.get("browser_download_url") or "")
            if url:
                return ReleaseAsset(url=url, name=name)
    return None


def tag_from_url(url: str) -> str | None:
    """``.../releases/tag/v3.1`` → ``v3.1``; ``None`` if the URL names no tag."""
    tag = url.rstrip("/").rsplit("/", 1)[-1]
    return tag if tag.startswith("v") else None


class ReleaseDiscovery:
    """Resolves the download URL of the latest release archive.

    Asks the release API first. When the API is rate limited (403), errors,
    or lists no matching asset, follows the ``/releases/latest`` redirect
    and builds the asset name from the release naming convention.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_url: str,
        latest_url: str,
        download_base: str,
        notifier: Notifier | None = None,
    ) -> None:
        self._client = client
        self._api_url = api_url
        self._latest_url = latest_url
        self._download_base = download_base.rstrip("/")
        self._notifier = notifier or NullNotifier()

    async def discover(self, target: PlatformTarget) -> ReleaseAsset:
        """Return the asset to download for ``target``.

        Raises:
            ReleaseDiscoveryError: If neither strategy yields a URL.
        """
        asset = await self._from_api(target)
        if asset is None:
            asset = await self._from_redirect(target)
        if asset is None:
            raise ReleaseDiscoveryError(
                f"Could not find {target.arch_tag} binary. (API rate limit might be active)"
            )
        return asset

    async def _from_api(self, target: PlatformTarget) -> ReleaseAsset | None:
        try:
            resp = await self._client.get(self._api_url)
        except httpx.HTTPError as exc:
            logger.warning("release API request failed: %s", exc)
            return None

        if resp.status_code == 403:
            log_line(self._notifier, "[SYSTEM] API rate limited, attempting fallback discovery...")
            return None
        if not resp.is_success:
            logger.warning("release API returned %d", resp.status_code)
            return None

        try:
            release = resp.json()
        except ValueError:
            logger.warning("release API returned a non-JSON body")
            return None
        if not isinstance(release, dict):
            return None
        asset = pick_asset(release, target)
        if asset is None:
            logger.info("latest release lists no %s%s asset", target.arch_tag, target.extension)
        return asset

    async def _from_redirect(self, target: PlatformTarget) -> ReleaseAsset | None:
        try:
            async with self._client.stream("GET", self._latest_url, follow_redirects=True) as resp:
                final_url = str(resp.url)
        except httpx.HTTPError as exc:
            raise ReleaseDiscoveryError(f"Fallback failed: {exc}") from exc

        tag = tag_from_url(final_url)
        if tag is None:
            logger.warning("latest-release redirect landed on %s, no tag", final_url)
            return None

        name = f"scrcpy-{target.arch_tag}-{tag}{target.extension}"
        log_line(self._notifier, f"[SYSTEM] Discovered latest tag via fallback: {tag}")
        return ReleaseAsset(url=f"{self._download_base}/{tag}/{name}", name=name)
