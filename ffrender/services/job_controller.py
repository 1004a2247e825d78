"""In-memory job registry, admission gate and task spawner.

Job state is per-process and lost on restart. The registry is bounded: every
status write sweeps out old jobs once the tracked count passes a high-water
mark.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ffrender.config import get_settings
from ffrender.exceptions import CapacityError, JobConflictError, JobNotFoundError

logger = logging.getLogger(__name__)

JOB_STATES = ("queued", "downloading", "rendering", "uploading", "finalizing", "done", "error")
TERMINAL_STATES = frozenset({"done", "error"})
ACTIVE_STATES = frozenset({"downloading", "rendering", "uploading", "finalizing"})

# uploading and finalizing are alternative branches and share a rank
_STATE_RANK = {
    "queued": 0,
    "downloading": 1,
    "rendering": 2,
    "uploading": 3,
    "finalizing": 3,
    "done": 4,
    "error": 4,
}

RESULT_FIELDS = ("video_url", "download_url", "metadata", "error")


@dataclass
class Job:
    job_id: str
    project_id: str | None
    status: str = "queued"
    progress: int = 0
    result: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    output_path: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    touched_at: float = field(default_factory=time.monotonic)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def to_dict(self) -> dict[str, Any]:
        data = {
            "job_id": self.job_id,
            "project_id": self.project_id,
            "status": self.status,
            "progress": self.progress,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        data.update(self.result)
        if self.error is not None:
            data["error"] = self.error
        return data


class JobController:
    """Owns the job registry and the concurrency slots."""

    def __init__(
        self,
        max_concurrent_jobs: int | None = None,
        high_water: int | None = None,
        ttl_seconds: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        on_evict: Callable[[Job], None] | None = None,
    ):
        settings = get_settings()
        self.max_concurrent_jobs = max_concurrent_jobs or settings.max_concurrent_jobs
        self.high_water = high_water or settings.job_registry_high_water
        self.ttl_seconds = ttl_seconds or settings.job_ttl_seconds
        self._clock = clock
        self._on_evict = on_evict
        self._jobs: dict[str, Job] = {}
        self._slots: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return len(self._slots)

    @property
    def tracked_count(self) -> int:
        return len(self._jobs)

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def require(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def admit(self, job_id: str, project_id: str | None = None) -> Job:
        """
        Reserve a render slot and register the job as queued.

        Raises:
            CapacityError: All slots are taken; no job record is created
            JobConflictError: A job with this id is still running, or its
                finished run has not released its slot yet (callback retries)
        """
        existing = self._jobs.get(job_id)
        if job_id in self._slots or (existing is not None and not existing.is_terminal):
            raise JobConflictError(job_id)
        if len(self._slots) >= self.max_concurrent_jobs:
            logger.warning(f"[JOB] Rejecting {job_id}: {len(self._slots)}/{self.max_concurrent_jobs} slots busy")
            raise CapacityError(active_jobs=len(self._slots), max_jobs=self.max_concurrent_jobs)

        self._slots.add(job_id)
        job = Job(job_id=job_id, project_id=project_id, touched_at=self._clock())
        self._jobs[job_id] = job
        logger.info(f"[JOB] Admitted {job_id} ({len(self._slots)}/{self.max_concurrent_jobs} slots)")
        self._sweep()
        return job

    def release(self, job_id: str) -> None:
        if job_id in self._slots:
            self._slots.discard(job_id)
            logger.debug(f"[JOB] Released slot for {job_id} ({len(self._slots)} active)")

    def set_status(self, job_id: str, status: str, progress: int | None = None, **fields: Any) -> Job:
        """
        Upsert a job's status, progress and result fields.

        Transitions never go backwards and terminal jobs are frozen; such
        updates are logged and ignored. Progress never decreases.

        Args:
            job_id: Job identifier
            status: One of JOB_STATES
            progress: New progress percentage (0-100)
            **fields: Result fields (video_url, download_url, metadata, error)

        Returns:
            The job record
        """
        if status not in _STATE_RANK:
            raise ValueError(f"Unknown job status: {status}")

        job = self._jobs.get(job_id)
        if job is None:
            job = Job(job_id=job_id, project_id=fields.pop("project_id", None))
            self._jobs[job_id] = job
        elif job.is_terminal:
            logger.warning(f"[JOB] Ignoring {status} for {job_id}: already {job.status}")
            return job
        elif _STATE_RANK[status] < _STATE_RANK[job.status]:
            logger.warning(f"[JOB] Ignoring backwards transition {job.status} -> {status} for {job_id}")
            return job

        job.status = status
        if status == "done":
            job.progress = 100
        elif progress is not None:
            job.progress = max(job.progress, min(100, progress))

        for key, value in fields.items():
            if key == "error":
                job.error = value
            elif key == "output_path":
                job.output_path = value
            elif key in RESULT_FIELDS:
                job.result[key] = value
            else:
                raise ValueError(f"Unknown job field: {key}")

        job.updated_at = datetime.now(timezone.utc)
        job.touched_at = self._clock()
        logger.info(f"[JOB] {job_id}: {status} ({job.progress}%)")
        self._sweep()
        return job

    def _sweep(self) -> None:
        """Drop stale jobs once the registry exceeds its high-water mark."""
        if len(self._jobs) <= self.high_water:
            return
        now = self._clock()
        stale = [
            job
            for job_id, job in self._jobs.items()
            if job_id not in self._slots and now - job.touched_at > self.ttl_seconds
        ]
        for job in stale:
            del self._jobs[job.job_id]
            if self._on_evict is not None:
                try:
                    self._on_evict(job)
                except OSError as e:
                    logger.warning(f"[JOB] Evict hook failed for {job.job_id}: {e}")
        if stale:
            logger.info(f"[JOB] Evicted {len(stale)} stale jobs ({len(self._jobs)} tracked)")

    def spawn(self, job_id: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run a job coroutine in the background, releasing its slot when it ends."""

        async def runner() -> None:
            try:
                await coro
            finally:
                self.release(job_id)

        task = asyncio.create_task(runner(), name=f"render-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every spawned job to finish (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
