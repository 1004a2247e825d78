from typing import Annotated

from fastapi import Depends, Request

from ffrender.config import Settings, get_settings
from ffrender.render.pipeline import RenderPipeline
from ffrender.services.font_service import FontService
from ffrender.services.job_controller import JobController


def get_job_controller(request: Request) -> JobController:
    return request.app.state.job_controller


def get_render_pipeline(request: Request) -> RenderPipeline:
    return request.app.state.render_pipeline


def get_fonts(request: Request) -> FontService:
    return request.app.state.font_service


Controller = Annotated[JobController, Depends(get_job_controller)]
Pipeline = Annotated[RenderPipeline, Depends(get_render_pipeline)]
Fonts = Annotated[FontService, Depends(get_fonts)]
AppSettings = Annotated[Settings, Depends(get_settings)]
