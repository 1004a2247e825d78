"""Tests for the job registry, admission gate and spawner."""

import asyncio

import pytest

from ffrender.exceptions import CapacityError, JobConflictError, JobNotFoundError
from ffrender.services.job_controller import JobController


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def controller():
    return JobController(max_concurrent_jobs=5, high_water=100, ttl_seconds=3600)


class TestAdmission:
    def test_admit_registers_queued_job(self, controller):
        job = controller.admit("job1", project_id="proj")

        assert job.status == "queued"
        assert job.progress == 0
        assert controller.active_count == 1
        assert controller.require("job1").project_id == "proj"

    def test_sixth_job_rejected_without_record(self, controller):
        for i in range(5):
            controller.admit(f"job{i}")

        with pytest.raises(CapacityError) as exc_info:
            controller.admit("job5")

        assert exc_info.value.to_dict() == {
            "code": "SERVER_BUSY",
            "message": "Server busy",
            "active_jobs": 5,
            "max": 5,
        }
        assert controller.get("job5") is None
        assert controller.active_count == 5

    def test_release_frees_slot(self, controller):
        for i in range(5):
            controller.admit(f"job{i}")
        controller.release("job0")
        controller.release("job0")

        assert controller.active_count == 4
        controller.admit("job5")

    def test_running_duplicate_conflicts(self, controller):
        controller.admit("job1")
        with pytest.raises(JobConflictError):
            controller.admit("job1")

    def test_finished_job_can_be_resubmitted(self, controller):
        controller.admit("job1")
        controller.set_status("job1", "error", error="boom")
        controller.release("job1")

        job = controller.admit("job1")

        assert job.status == "queued"
        assert job.error is None

    @pytest.mark.asyncio
    async def test_finished_job_holding_slot_cannot_be_resubmitted(self):
        controller = JobController(max_concurrent_jobs=2, high_water=100, ttl_seconds=3600)
        controller.admit("a")
        callback_pending = asyncio.Event()

        async def work():
            controller.set_status("a", "error", error="boom")
            await callback_pending.wait()

        task = controller.spawn("a", work())
        await asyncio.sleep(0)
        assert controller.require("a").status == "error"

        with pytest.raises(JobConflictError):
            controller.admit("a")

        callback_pending.set()
        await task

        controller.admit("b")
        controller.admit("c")
        with pytest.raises(CapacityError):
            controller.admit("d")
        assert controller.active_count == 2

    @pytest.mark.asyncio
    async def test_resubmission_after_slot_release_keeps_cap(self):
        controller = JobController(max_concurrent_jobs=2, high_water=100, ttl_seconds=3600)
        controller.admit("a")

        async def work():
            controller.set_status("a", "done")

        await controller.spawn("a", work())
        controller.admit("a")
        controller.admit("b")

        with pytest.raises(CapacityError):
            controller.admit("c")
        assert controller.active_count == 2

    def test_require_unknown_job(self, controller):
        with pytest.raises(JobNotFoundError):
            controller.require("ghost")


class TestSetStatus:
    def test_flat_lifecycle(self, controller):
        controller.admit("job1")
        controller.set_status("job1", "downloading", 10)
        controller.set_status("job1", "rendering", 30)
        controller.set_status("job1", "uploading", 80)
        job = controller.set_status("job1", "done", video_url="https://cdn.test/final.mp4")

        assert job.status == "done"
        assert job.progress == 100
        assert job.to_dict()["video_url"] == "https://cdn.test/final.mp4"

    def test_backwards_transition_ignored(self, controller):
        controller.admit("job1")
        controller.set_status("job1", "rendering", 30)

        job = controller.set_status("job1", "downloading", 10)

        assert (job.status, job.progress) == ("rendering", 30)

    def test_terminal_jobs_are_frozen(self, controller):
        controller.admit("job1")
        controller.set_status("job1", "done", download_url="http://render.test/download/x.mp4")

        job = controller.set_status("job1", "error", error="late failure")

        assert job.status == "done"
        assert job.error is None

    def test_progress_never_decreases(self, controller):
        controller.admit("job1")
        controller.set_status("job1", "rendering", 50)
        assert controller.set_status("job1", "rendering", 40).progress == 50

    def test_error_is_exposed(self, controller):
        controller.admit("job1")
        job = controller.set_status("job1", "error", error="FFmpeg failed")
        assert job.to_dict()["error"] == "FFmpeg failed"

    def test_unknown_values_rejected(self, controller):
        controller.admit("job1")
        with pytest.raises(ValueError):
            controller.set_status("job1", "paused")
        with pytest.raises(ValueError):
            controller.set_status("job1", "rendering", colour="red")


class TestEviction:
    def test_stale_jobs_swept_past_high_water(self):
        clock = FakeClock()
        evicted = []
        controller = JobController(
            max_concurrent_jobs=10, high_water=3, ttl_seconds=60, clock=clock, on_evict=evicted.append
        )
        for i in range(3):
            controller.admit(f"old{i}")
            controller.set_status(f"old{i}", "done", output_path=f"/tmp/old{i}.mp4")
            controller.release(f"old{i}")

        clock.now += 120
        controller.admit("fresh")

        assert controller.tracked_count == 1
        assert controller.get("fresh") is not None
        assert sorted(job.output_path for job in evicted) == ["/tmp/old0.mp4", "/tmp/old1.mp4", "/tmp/old2.mp4"]

    def test_under_high_water_nothing_is_swept(self):
        clock = FakeClock()
        controller = JobController(max_concurrent_jobs=10, high_water=3, ttl_seconds=60, clock=clock)
        controller.admit("a")
        controller.set_status("a", "done")
        controller.release("a")

        clock.now += 1000
        controller.admit("b")

        assert controller.tracked_count == 2

    def test_active_jobs_never_swept(self):
        clock = FakeClock()
        controller = JobController(max_concurrent_jobs=10, high_water=1, ttl_seconds=60, clock=clock)
        controller.admit("running")

        clock.now += 1000
        controller.admit("other")

        assert controller.get("running") is not None


class TestSpawn:
    @pytest.mark.asyncio
    async def test_slot_released_after_completion(self, controller):
        controller.admit("job1")

        async def work():
            controller.set_status("job1", "done")

        await controller.spawn("job1", work())

        assert controller.active_count == 0
        assert controller.require("job1").status == "done"

    @pytest.mark.asyncio
    async def test_slot_released_when_job_raises(self, controller):
        controller.admit("job1")

        async def work():
            raise RuntimeError("crash")

        task = controller.spawn("job1", work())
        with pytest.raises(RuntimeError):
            await task

        assert controller.active_count == 0

    @pytest.mark.asyncio
    async def test_drain_waits_for_tasks(self, controller):
        controller.admit("job1")
        finished = asyncio.Event()

        async def work():
            await asyncio.sleep(0)
            finished.set()

        controller.spawn("job1", work())
        await controller.drain()

        assert finished.is_set()
        assert controller.active_count == 0
