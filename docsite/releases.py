"""Download and extraction of prebuilt documentation releases."""

from __future__ import annotations

import asyncio
import zipfile
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
import httpx

from .config import SiteConfig
from .logging import get_logger
from .models import ReleaseArtifact, SyncResult
from .versions import VersionPlan

LATEST_DIRNAME = "latest"
_CHUNK_SIZE = 64 * 1024


class ReleaseError(RuntimeError):
    """Raised when a single release cannot be downloaded or extracted."""


class ReleaseSynchronizer:
    """Fetches each planned release archive and unpacks it into the output tree.

    The latest release is unpacked into ``latest/`` instead of a directory named
    after its version. A failing release is logged and skipped; the others are
    still synchronized.
    """

    def __init__(
        self,
        config: SiteConfig,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self._client = client
        self.logger = get_logger("releases")

    def target_dir(self, version: str, latest: str) -> Path:
        if version == latest:
            return self.config.output_dir / LATEST_DIRNAME
        return self.config.output_dir / version

    async def synchronize(self, plan: VersionPlan) -> SyncResult:
        result = SyncResult()
        self.config.output_dir.mkdir(parents=True, exist_ok=True)
        self.logger.debug("Releases to deploy: %s", ", ".join(plan.releases))

        if self._client is not None:
            await self._synchronize_all(self._client, plan, result)
        else:
            async with httpx.AsyncClient(
                follow_redirects=True, timeout=self.config.request_timeout
            ) as client:
                await self._synchronize_all(client, plan, result)
        return result

    async def _synchronize_all(
        self, client: httpx.AsyncClient, plan: VersionPlan, result: SyncResult
    ) -> None:
        semaphore = asyncio.Semaphore(self.config.max_parallel_downloads)

        async def _run(version: str) -> None:
            async with semaphore:
                try:
                    artifact = await self.synchronize_release(client, version, plan.latest)
                except Exception as exc:
                    self.logger.error("%s", exc)
                    self.logger.error("Skip release %s", version)
                    result.failed[version] = str(exc)
                else:
                    result.artifacts.append(artifact)

        await asyncio.gather(*(_run(version) for version in plan.releases))
        # Completion order depends on the network; report in plan order.
        order = {version: index for index, version in enumerate(plan.releases)}
        result.artifacts.sort(key=lambda artifact: order[artifact.version])

    async def synchronize_release(
        self, client: httpx.AsyncClient, version: str, latest: str
    ) -> ReleaseArtifact:
        """Download and extract one release, always removing the archive afterwards."""
        download_url = self.config.download_url(version)
        archive_path = self.config.output_dir / f"{version}.zip"
        target = self.target_dir(version, latest)
        self.logger.debug("Release %s download url %s", version, download_url)

        try:
            try:
                await self._download(client, download_url, archive_path)
            except Exception as exc:
                raise ReleaseError(
                    f"Failed to download release for version {version}: {exc}"
                ) from exc
            self.logger.debug("%s download completed", version)
            if version == latest:
                self.logger.info(
                    "Release %s will be extracted in '%s' folder", version, LATEST_DIRNAME
                )
            try:
                await asyncio.to_thread(_extract_archive, archive_path, target)
            except Exception as exc:
                raise ReleaseError(f"Failed to unzip release {version} - {exc}") from exc
        finally:
            await _remove_quietly(archive_path)

        self.logger.info("Release %s unzip completed", version)
        return ReleaseArtifact(
            version=version,
            download_url=download_url,
            archive_path=archive_path,
            extracted_path=target,
        )

    async def _download(
        self, client: httpx.AsyncClient, url: str, destination: Path
    ) -> None:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            async with aiofiles.open(destination, "wb") as handle:
                async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                    await handle.write(chunk)


def _extract_archive(archive_path: Path, target: Path) -> None:
    with zipfile.ZipFile(archive_path) as archive:
        bad_member = archive.testzip()
        if bad_member is not None:
            raise zipfile.BadZipFile(f"corrupt member {bad_member}")
        target.mkdir(parents=True, exist_ok=True)
        archive.extractall(target)


async def _remove_quietly(path: Path) -> None:
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        pass


__all__ = ["LATEST_DIRNAME", "ReleaseError", "ReleaseSynchronizer"]
