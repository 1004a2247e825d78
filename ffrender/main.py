import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from ffrender.api import render, system
from ffrender.config import get_settings
from ffrender.exceptions import RenderServerError
from ffrender.render.executor import check_ffmpeg
from ffrender.render.pipeline import RenderPipeline
from ffrender.render.workspace import cleanup_files, clear_directory
from ffrender.services.font_service import get_font_service
from ffrender.services.job_controller import JobController
from ffrender.services.publisher import ResultPublisher
from ffrender.services.storage_service import get_storage_service

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    removed = clear_directory(settings.temp_dir)
    if removed:
        logger.info(f"[STARTUP] Cleared {removed} leftover entries from {settings.temp_dir}")

    app.state.ffmpeg_version = await check_ffmpeg(settings.ffmpeg_path)
    if app.state.ffmpeg_version:
        logger.info(f"[STARTUP] {app.state.ffmpeg_version}")
    else:
        logger.error("[STARTUP] FFmpeg is not available; renders will fail")

    if settings.download_fonts_on_startup:
        await app.state.font_service.init_fonts()

    app.state.started_at = time.monotonic()
    yield
    # Shutdown
    await app.state.job_controller.drain()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    Path(settings.temp_dir).mkdir(parents=True, exist_ok=True)
    storage = get_storage_service()
    fonts = get_font_service()
    controller = JobController(on_evict=lambda job: cleanup_files(job.output_path))
    publisher = ResultPublisher(storage)

    app.state.storage = storage
    app.state.font_service = fonts
    app.state.job_controller = controller
    app.state.publisher = publisher
    app.state.render_pipeline = RenderPipeline(controller, publisher, fonts, storage=storage)
    app.state.started_at = time.monotonic()

    @app.exception_handler(RenderServerError)
    async def render_server_error_handler(request: Request, exc: RenderServerError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Report schema errors with the same shape as ValidationError."""
        errors = exc.errors()
        if errors:
            first_error = errors[0]
            loc = " -> ".join(str(x) for x in first_error.get("loc", []))
            msg = first_error.get("msg", "Validation error")
            message = f"{loc}: {msg}" if loc else msg
        else:
            message = "Request validation failed"
        return JSONResponse(
            status_code=400,
            content={"error": {"code": "VALIDATION_ERROR", "message": message}},
        )

    # Global exception handler to ensure errors return proper JSON
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}},
        )

    # Routers
    app.include_router(system.router, tags=["system"])
    app.include_router(render.router, tags=["render"])

    if settings.use_local_storage:
        Path(settings.local_storage_path).mkdir(parents=True, exist_ok=True)
        app.mount("/storage", StaticFiles(directory=settings.local_storage_path), name="storage")

    return app


app = create_app()
