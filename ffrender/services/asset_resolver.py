"""Fetch a job's remote assets into its workspace."""

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import httpx

from ffrender.config import get_settings
from ffrender.exceptions import ResourceError
from ffrender.render.workspace import JobWorkspace

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = {
    "video": ".mp4",
    "audio": ".mp3",
    "image": ".png",
    "subtitle": ".srt",
}

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class AssetRef:
    url: str
    kind: str  # video, audio, image or subtitle


def extension_for(url: str, kind: str) -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix
    if suffix and len(suffix) <= 6:
        return suffix
    return DEFAULT_EXTENSIONS.get(kind, ".bin")


def free_disk_mb(path: str | Path) -> float:
    return shutil.disk_usage(path).free / (1024 * 1024)


class AssetResolver:
    """Downloads each distinct URL of a job exactly once.

    URLs served by the configured storage backend go through the storage
    client first; any failure there falls back to a plain HTTP download.
    """

    def __init__(
        self,
        workspace: JobWorkspace,
        storage=None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.workspace = workspace
        self.storage = storage
        self.timeout = settings.download_timeout_seconds
        self.min_free_disk_mb = settings.min_free_disk_mb
        self._transport = transport
        self._asset_map: dict[str, Path] = {}
        self._counter = 0

    @property
    def asset_map(self) -> dict[str, Path]:
        return dict(self._asset_map)

    def ensure_disk_space(self) -> None:
        free_mb = free_disk_mb(self.workspace.root)
        if free_mb < self.min_free_disk_mb:
            raise ResourceError(
                f"Insufficient disk space: {free_mb:.0f}MB free, {self.min_free_disk_mb}MB required"
            )

    def _reserve(self, url: str, kind: str) -> Path:
        path = self.workspace.path(f"_asset_{self._counter}{extension_for(url, kind)}")
        self._counter += 1
        self._asset_map[url] = path
        return path

    async def _download_http(self, url: str, destination: Path) -> None:
        async with httpx.AsyncClient(
            timeout=self.timeout, follow_redirects=True, transport=self._transport
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                with open(destination, "wb") as f:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        f.write(chunk)

    async def _download(self, url: str, destination: Path) -> Path:
        key = self.storage.key_from_url(url) if self.storage is not None else None
        if key:
            try:
                await self.storage.download_file(key, str(destination))
                logger.info(f"[ASSETS] Fetched {key} from storage")
                return destination
            except Exception as e:
                logger.warning(f"[ASSETS] Storage download failed for {key}, falling back to HTTP: {e}")

        try:
            await self._download_http(url, destination)
        except httpx.HTTPError as e:
            raise ResourceError(f"Failed to download {url}: {e}") from e
        except OSError as e:
            raise ResourceError(f"Failed to write {destination.name}: {e}") from e

        logger.info(f"[ASSETS] Downloaded {url} -> {destination.name}")
        return destination

    async def fetch(self, url: str, kind: str = "video") -> Path:
        """Fetch a single URL (reusing an earlier fetch of the same URL)."""
        if url in self._asset_map:
            return self._asset_map[url]
        return await self._download(url, self._reserve(url, kind))

    async def fetch_all(self, refs: list[AssetRef]) -> dict[str, Path]:
        """
        Fetch every distinct URL concurrently.

        Args:
            refs: Asset references, possibly repeating URLs

        Returns:
            Mapping of URL to local path

        Raises:
            ResourceError: The first failure in submission order, raised
                only after every download has settled
        """
        pending: dict[str, Path] = {}
        for ref in refs:
            if ref.url not in self._asset_map:
                pending[ref.url] = self._reserve(ref.url, ref.kind)

        if pending:
            logger.info(f"[ASSETS] Job {self.workspace.job_id}: fetching {len(pending)} assets")
            results = await asyncio.gather(
                *(self._download(url, path) for url, path in pending.items()),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, ResourceError):
                    raise result
                if isinstance(result, BaseException):
                    raise ResourceError(f"Asset fetch failed: {result}") from result

        return {ref.url: self._asset_map[ref.url] for ref in refs}
