"""Render job orchestration.

One RenderPipeline runs one job from admission to a terminal state:
download assets, compile the filter graph, run ffmpeg, publish the result
and notify the caller. Every file the job creates is tracked in its
workspace and deleted whether the job succeeds or fails.
"""

import logging
from pathlib import Path
from typing import Any

import httpx

from ffrender.config import get_settings
from ffrender.exceptions import RenderServerError
from ffrender.render.compiler import DEFAULT_HEIGHT, DEFAULT_WIDTH, FilterGraphCompiler
from ffrender.render.executor import RenderExecutor
from ffrender.render.subtitles import parse_srt
from ffrender.render.workspace import JobWorkspace
from ffrender.schemas.effects import TextOverlay
from ffrender.schemas.render import RenderRequest
from ffrender.services.asset_resolver import AssetRef, AssetResolver
from ffrender.services.font_service import FontService
from ffrender.services.job_controller import JobController
from ffrender.services.publisher import ResultPublisher
from ffrender.utils.media_info import MediaInfo, probe

logger = logging.getLogger(__name__)

# Progress milestones
PROGRESS_DOWNLOADING = 10
PROGRESS_RENDERING = 30
PROGRESS_PUBLISHING = 80


def resolve_text_overlay(request: RenderRequest) -> TextOverlay | None:
    """Combine ``text_overlay`` (plain string or full object) with ``effects.text`` styling."""
    overlay = request.text_overlay
    style = request.effects.text
    if isinstance(overlay, str):
        if not overlay.strip():
            return None
        return (style or TextOverlay()).model_copy(update={"text": overlay})
    if overlay is not None:
        return overlay if overlay.text.strip() else None
    if style is not None and style.text.strip():
        return style
    return None


async def _probe_or_none(path: Path) -> MediaInfo | None:
    try:
        return await probe(str(path))
    except (RuntimeError, OSError, ValueError) as e:
        logger.warning(f"[RENDER] Probe failed for {path.name}, using defaults: {e}")
        return None


class RenderPipeline:
    """Runs a single admitted job to completion or failure."""

    def __init__(
        self,
        controller: JobController,
        publisher: ResultPublisher,
        fonts: FontService,
        *,
        storage=None,
        executor: RenderExecutor | None = None,
        temp_dir: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.controller = controller
        self.publisher = publisher
        self.fonts = fonts
        self.storage = storage
        self.executor = executor or RenderExecutor()
        self.temp_dir = temp_dir or get_settings().temp_dir
        self.transport = transport

    async def run(self, request: RenderRequest) -> None:
        """Execute the job. Never raises; failures become the job's error state."""
        job_id = request.job_id
        workspace = JobWorkspace(job_id, self.temp_dir)
        resolver = AssetResolver(workspace, self.storage, transport=self.transport)
        compiler = FilterGraphCompiler(workspace, self.fonts)

        try:
            if request.is_timeline:
                payload = await self._run_timeline(request, workspace, resolver, compiler)
            else:
                payload = await self._run_flat(request, workspace, resolver, compiler)
        except Exception as e:
            message = e.message if isinstance(e, RenderServerError) else str(e) or type(e).__name__
            logger.exception(f"[RENDER] Job {job_id} failed: {message}")
            self.controller.set_status(job_id, "error", error=message)
            payload = {
                "job_id": job_id,
                "project_id": request.project_id,
                "status": "error",
                "error": message,
            }
        finally:
            workspace.cleanup()

        await self.publisher.send_callback(request.callback_url, payload)

    # =========================================================================
    # Flat mode
    # =========================================================================

    async def _run_flat(
        self,
        request: RenderRequest,
        workspace: JobWorkspace,
        resolver: AssetResolver,
        compiler: FilterGraphCompiler,
    ) -> dict[str, Any]:
        job_id = request.job_id
        effects = request.effects

        self.controller.set_status(job_id, "downloading", PROGRESS_DOWNLOADING)
        resolver.ensure_disk_space()

        refs = [AssetRef(request.video_url, "video"), AssetRef(request.audio_url, "audio")]
        if effects.watermark:
            refs.append(AssetRef(effects.watermark.url, "image"))
        if request.subtitle_url:
            refs.append(AssetRef(request.subtitle_url, "subtitle"))
        assets = await resolver.fetch_all(refs)

        subtitle_text = request.subtitle_content
        if request.subtitle_url:
            subtitle_text = assets[request.subtitle_url].read_text(encoding="utf-8", errors="replace")
        cues = parse_srt(subtitle_text) if subtitle_text else []

        media = await _probe_or_none(assets[request.video_url])

        self.controller.set_status(job_id, "rendering", PROGRESS_RENDERING)
        graph = compiler.compile_flat(
            effects,
            str(assets[request.video_url]),
            str(assets[request.audio_url]),
            media=media,
            cues=cues,
            text_overlay=resolve_text_overlay(request),
            watermark_path=str(assets[effects.watermark.url]) if effects.watermark else None,
        )
        output_path = workspace.path("_output.mp4")
        await self.executor.run(graph, output_path, effects.output)

        self.controller.set_status(job_id, "uploading", PROGRESS_PUBLISHING)
        video_url = await self.publisher.upload(output_path, request.project_id, job_id)

        self.controller.set_status(job_id, "done", 100, video_url=video_url)
        return {
            "job_id": job_id,
            "project_id": request.project_id,
            "status": "success",
            "video_url": video_url,
        }

    # =========================================================================
    # Timeline mode
    # =========================================================================

    async def _run_timeline(
        self,
        request: RenderRequest,
        workspace: JobWorkspace,
        resolver: AssetResolver,
        compiler: FilterGraphCompiler,
    ) -> dict[str, Any]:
        job_id = request.job_id
        entries = request.timeline

        self.controller.set_status(job_id, "downloading", PROGRESS_DOWNLOADING)
        resolver.ensure_disk_space()

        refs = [AssetRef(e.url, e.type) for e in entries if e.type in ("video", "audio")]
        assets = await resolver.fetch_all(refs)

        width, height = DEFAULT_WIDTH, DEFAULT_HEIGHT
        first_video = next((e for e in entries if e.type == "video"), None)
        if first_video is not None and any(e.type == "subtitle" for e in entries):
            media = await _probe_or_none(assets[first_video.url])
            if media is not None and media.width and media.height:
                width, height = media.width, media.height

        self.controller.set_status(job_id, "rendering", PROGRESS_RENDERING)
        graph = compiler.compile_timeline(
            entries, {url: str(path) for url, path in assets.items()}, width=width, height=height
        )
        output_path = workspace.path("_output.mp4")
        await self.executor.run(graph, output_path, request.output)

        self.controller.set_status(job_id, "finalizing", PROGRESS_PUBLISHING)
        download_url, metadata = await self.publisher.serve_locally(output_path)
        workspace.keep(output_path)

        self.controller.set_status(
            job_id, "done", 100, download_url=download_url, metadata=metadata, output_path=str(output_path)
        )
        return {
            "job_id": job_id,
            "project_id": request.project_id,
            "status": "success",
            "download_url": download_url,
            "metadata": metadata,
        }
