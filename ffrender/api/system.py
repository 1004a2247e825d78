"""Service info, health and effects catalog endpoints."""

import shutil
import time

from fastapi import APIRouter, Request

from ffrender.api.deps import AppSettings, Controller, Fonts
from ffrender.render.presets import COLOR_PRESETS, QUALITY_PRESETS
from ffrender.schemas.effects import effects_schema
from ffrender.services.font_service import FONT_CATALOG, font_categories

router = APIRouter()


@router.get("/")
async def service_info(settings: AppSettings) -> dict:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "endpoints": {
            "POST /render": "Submit a flat-mode or timeline render job",
            "GET /status/{job_id}": "Job state, progress and result",
            "GET /download/{filename}": "Download a timeline render",
            "GET /effects": "Effects catalog, fonts and presets",
            "GET /health": "Service health",
        },
    }


@router.get("/health")
async def health_check(request: Request, controller: Controller, settings: AppSettings) -> dict:
    try:
        disk_free_mb = round(shutil.disk_usage(settings.temp_dir).free / (1024 * 1024))
    except OSError:
        disk_free_mb = None
    ffmpeg_version = getattr(request.app.state, "ffmpeg_version", None)
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return {
        "status": "healthy" if ffmpeg_version else "degraded",
        "version": settings.app_version,
        "ffmpeg": ffmpeg_version is not None,
        "ffmpeg_version": ffmpeg_version,
        "active_jobs": controller.active_count,
        "max_concurrent_jobs": controller.max_concurrent_jobs,
        "jobs_tracked": controller.tracked_count,
        "disk_free_mb": disk_free_mb,
        "uptime_seconds": round(time.monotonic() - started_at),
    }


@router.get("/effects")
async def effects_catalog(fonts: Fonts) -> dict:
    return {
        "effects": effects_schema(),
        "fonts": sorted(FONT_CATALOG),
        "fonts_available": sorted(fonts.available()),
        "font_categories": font_categories(),
        "color_presets": sorted(COLOR_PRESETS),
        "quality_presets": {
            name: {"crf": preset.crf, "preset": preset.preset} for name, preset in QUALITY_PRESETS.items()
        },
    }
