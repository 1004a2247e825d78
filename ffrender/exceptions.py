"""Custom exceptions for the render server.

Every error carries a machine-readable code and the HTTP status used when it
reaches the API layer. Errors raised inside a running job never reach the
client directly; the pipeline records their message on the job instead.
"""

from typing import Any


class RenderServerError(Exception):
    """Base exception for all render server errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to the JSON error body."""
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        body.update(self.details)
        return body


# =============================================================================
# Submission Errors (4xx)
# =============================================================================


class ValidationError(RenderServerError):
    """Malformed or incomplete job submission."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Invalid render request"

    def __init__(self, message: str | None = None, field: str | None = None):
        details = {"field": field} if field else None
        super().__init__(message, details=details)


class JobNotFoundError(RenderServerError):
    """Job is not tracked (unknown or already evicted)."""

    code = "JOB_NOT_FOUND"
    status_code = 404
    message = "Job not found"

    def __init__(self, job_id: str | None = None):
        message = f"Job not found: {job_id}" if job_id else self.message
        super().__init__(message)


class JobConflictError(RenderServerError):
    """A job with the same id is still running."""

    code = "JOB_IN_PROGRESS"
    status_code = 409
    message = "A job with this id is already in progress"

    def __init__(self, job_id: str | None = None):
        message = f"Job already in progress: {job_id}" if job_id else self.message
        super().__init__(message)


# =============================================================================
# Admission Errors (503)
# =============================================================================


class CapacityError(RenderServerError):
    """Admission refused because every render slot is taken."""

    code = "SERVER_BUSY"
    status_code = 503
    message = "Server busy"

    def __init__(self, active_jobs: int, max_jobs: int):
        self.active_jobs = active_jobs
        self.max_jobs = max_jobs
        super().__init__(details={"active_jobs": active_jobs, "max": max_jobs})


# =============================================================================
# Job Runtime Errors
# =============================================================================


class ResourceError(RenderServerError):
    """Insufficient local storage or an asset that could not be fetched."""

    code = "RESOURCE_ERROR"
    status_code = 507
    message = "Required resource unavailable"


class RenderError(RenderServerError):
    """ffmpeg exited with a non-zero status."""

    code = "RENDER_FAILED"
    status_code = 500
    message = "Rendering failed"

    def __init__(self, message: str | None = None, stderr: str = "", returncode: int | None = None):
        self.stderr = stderr
        self.returncode = returncode
        if message is None:
            tail = stderr.strip().splitlines()[-1] if stderr.strip() else "no diagnostic output"
            message = f"FFmpeg failed (exit {returncode}): {tail}"
        super().__init__(message)


class PublishError(RenderServerError):
    """Uploading the rendered output failed."""

    code = "PUBLISH_FAILED"
    status_code = 502
    message = "Failed to publish render output"


class CallbackError(RenderServerError):
    """A single callback delivery attempt failed. Never fails a job."""

    code = "CALLBACK_FAILED"
    status_code = 502
    message = "Callback delivery failed"
