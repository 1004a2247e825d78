"""Render API endpoints: submission, status polling and output download."""

import logging
import re
from pathlib import Path

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from ffrender.api.deps import AppSettings, Controller, Pipeline
from ffrender.exceptions import JobNotFoundError, ValidationError
from ffrender.schemas.render import JobStatusResponse, RenderAccepted, RenderRequest

router = APIRouter()
logger = logging.getLogger(__name__)

# job ids end up in temp file names
JOB_ID_RE = re.compile(r"^[A-Za-z0-9_.-]{1,128}$")


def validate_submission(render_request: RenderRequest) -> None:
    """
    Check the submission before admission.

    Raises:
        ValidationError: Missing or unusable job_id, or neither a timeline
            nor a video_url/audio_url pair
    """
    if not render_request.job_id:
        raise ValidationError("Missing job_id", field="job_id")
    if not JOB_ID_RE.match(render_request.job_id) or render_request.job_id.startswith("."):
        raise ValidationError("job_id may only contain letters, digits, '.', '_' and '-'", field="job_id")
    if render_request.is_timeline:
        return
    if not render_request.video_url or not render_request.audio_url:
        raise ValidationError("Missing timeline or video_url/audio_url", field="timeline")


@router.post("/render", response_model=RenderAccepted, status_code=status.HTTP_202_ACCEPTED)
async def submit_render(
    render_request: RenderRequest,
    controller: Controller,
    pipeline: Pipeline,
) -> RenderAccepted:
    """
    Admit a render job and run it in the background.

    Returns immediately; poll /status/{job_id} or wait for the callback.
    """
    validate_submission(render_request)

    job = controller.admit(render_request.job_id, render_request.project_id)
    mode = "timeline" if render_request.is_timeline else "flat"
    logger.info(f"[RENDER] Job {job.job_id} accepted ({mode} mode, project={job.project_id})")

    controller.spawn(job.job_id, pipeline.run(render_request))
    return RenderAccepted(job_id=job.job_id, status=job.status)


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, controller: Controller) -> JobStatusResponse:
    job = controller.get(job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    return JobStatusResponse(**job.to_dict())


@router.get("/download/{filename}")
async def download_output(filename: str, settings: AppSettings) -> FileResponse:
    """Serve a timeline render from the temp directory."""
    safe_name = Path(filename).name
    file_path = Path(settings.temp_dir) / safe_name
    if not safe_name or safe_name.startswith(".") or not file_path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(file_path, media_type="video/mp4", filename=safe_name)
