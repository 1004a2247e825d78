"""Deliver render results: upload or local serve, then notify the caller."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx

from ffrender.config import get_settings
from ffrender.exceptions import CallbackError, PublishError
from ffrender.utils.media_info import probe

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def upload_key(project_id: str | None, job_id: str) -> str:
    return f"final/{project_id or 'default'}/final_{job_id}.mp4"


class ResultPublisher:
    """Publishes outputs and delivers callbacks.

    Callback delivery is retried with a linearly growing delay
    (attempt number x retry unit) and never raises.
    """

    def __init__(
        self,
        storage=None,
        *,
        sleep: Sleep = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.storage = storage
        self.public_base_url = settings.public_base_url.rstrip("/")
        self.callback_timeout = settings.callback_timeout_seconds
        self.max_attempts = settings.callback_max_attempts
        self.retry_unit = settings.callback_retry_unit_seconds
        self._sleep = sleep
        self._transport = transport

    # =========================================================================
    # Output delivery
    # =========================================================================

    async def upload(self, output_path: Path, project_id: str | None, job_id: str) -> str:
        """Upload a flat-mode render and return its public URL."""
        key = upload_key(project_id, job_id)
        try:
            url = await self.storage.upload_file(str(output_path), key, "video/mp4")
        except Exception as e:
            raise PublishError(f"Upload failed for {key}: {e}") from e
        logger.info(f"[PUBLISH] Uploaded {output_path.name} -> {url}")
        return url

    async def serve_locally(self, output_path: Path) -> tuple[str, dict[str, Any]]:
        """Expose a timeline render through /download and collect its metadata."""
        download_url = f"{self.public_base_url}/download/{output_path.name}"
        try:
            info = await probe(str(output_path))
            metadata = {"duration_sec": round(info.duration), "file_size": info.file_size}
        except (RuntimeError, OSError, ValueError) as e:
            logger.warning(f"[PUBLISH] Probe failed for {output_path.name}: {e}")
            metadata = {"duration_sec": None, "file_size": output_path.stat().st_size}
        logger.info(f"[PUBLISH] Serving {output_path.name} at {download_url}")
        return download_url, metadata

    # =========================================================================
    # Callbacks
    # =========================================================================

    async def _post(self, client: httpx.AsyncClient, url: str, payload: dict[str, Any]) -> None:
        try:
            response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise CallbackError(f"Callback request failed: {e}") from e
        if not response.is_success:
            raise CallbackError(f"Callback returned HTTP {response.status_code}")

    async def send_callback(self, url: str | None, payload: dict[str, Any]) -> bool:
        """
        POST ``payload`` to ``url`` with retries.

        Returns:
            True if an attempt succeeded, False once every attempt failed
            (or no url was given)
        """
        if not url:
            return False

        job_id = payload.get("job_id")
        async with httpx.AsyncClient(timeout=self.callback_timeout, transport=self._transport) as client:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    await self._post(client, url, payload)
                    logger.info(f"[CALLBACK] Job {job_id}: delivered on attempt {attempt}")
                    return True
                except CallbackError as e:
                    logger.warning(f"[CALLBACK] Job {job_id}: attempt {attempt}/{self.max_attempts} failed: {e}")
                    if attempt < self.max_attempts:
                        await self._sleep(attempt * self.retry_unit)

        logger.error(f"[CALLBACK] Job {job_id}: giving up after {self.max_attempts} attempts")
        return False
