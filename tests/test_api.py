"""
Tests for the HTTP surface.

The render pipeline is replaced with a mock so submissions are admitted and
spawned without downloading or rendering anything.
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from ffrender.config import get_settings
from ffrender.main import create_app

FLAT_REQUEST = {
    "job_id": "job1",
    "project_id": "proj",
    "video_url": "https://cdn.test/v.mp4",
    "audio_url": "https://cdn.test/a.mp3",
    "effects": {"speed": 1.5},
}


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def app():
    app = create_app()
    app.state.render_pipeline = MagicMock(run=AsyncMock())
    return app


@pytest.fixture
def client(app):
    """FastAPI test client with lifespan (ffmpeg check patched)."""
    with patch("ffrender.main.check_ffmpeg", new=AsyncMock(return_value="ffmpeg version 6.1")):
        with TestClient(app, raise_server_exceptions=False) as client:
            yield client


@pytest.fixture
def controller(app):
    return app.state.job_controller


# =============================================================================
# Submission
# =============================================================================


class TestSubmitRender:
    def test_flat_job_accepted(self, client, app):
        response = client.post("/render", json=FLAT_REQUEST)

        assert response.status_code == 202
        assert response.json() == {"job_id": "job1", "status": "queued", "message": "Render job accepted"}
        request = app.state.render_pipeline.run.call_args.args[0]
        assert request.effects.speed_factor == 1.5
        assert not request.is_timeline

    def test_timeline_job_accepted(self, client, app):
        response = client.post(
            "/render",
            json={
                "job_id": "tl1",
                "timeline": [{"type": "video", "url": "https://cdn.test/v.mp4", "start": 0, "end": 4}],
            },
        )

        assert response.status_code == 202
        assert app.state.render_pipeline.run.call_args.args[0].is_timeline

    def test_missing_job_id(self, client):
        response = client.post("/render", json={"video_url": "x", "audio_url": "y"})

        assert response.status_code == 400
        assert response.json() == {
            "error": {"code": "VALIDATION_ERROR", "message": "Missing job_id", "field": "job_id"}
        }

    def test_missing_inputs(self, client, controller):
        response = client.post("/render", json={"job_id": "job1", "video_url": "https://cdn.test/v.mp4"})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Missing timeline or video_url/audio_url"
        assert controller.get("job1") is None

    def test_unsafe_job_id(self, client):
        response = client.post("/render", json={**FLAT_REQUEST, "job_id": "../../etc"})
        assert response.status_code == 400
        assert response.json()["error"]["field"] == "job_id"

    def test_schema_errors_use_error_envelope(self, client):
        response = client.post(
            "/render", json={"job_id": "job1", "timeline": [{"type": "video", "start": 0, "end": 2}]}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_capacity_exhausted(self, client, controller):
        for i in range(controller.max_concurrent_jobs):
            controller.admit(f"busy{i}")

        response = client.post("/render", json=FLAT_REQUEST)

        assert response.status_code == 503
        assert response.json() == {
            "error": {"code": "SERVER_BUSY", "message": "Server busy", "active_jobs": 5, "max": 5}
        }
        assert controller.get("job1") is None

    def test_duplicate_running_job(self, client, controller):
        controller.admit("job1")

        response = client.post("/render", json=FLAT_REQUEST)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "JOB_IN_PROGRESS"


# =============================================================================
# Status and download
# =============================================================================


class TestStatus:
    def test_unknown_job(self, client):
        response = client.get("/status/ghost")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "JOB_NOT_FOUND"

    def test_finished_timeline_job(self, client, controller):
        controller.admit("job1", "proj")
        controller.set_status(
            "job1",
            "done",
            download_url="http://render.test/download/job1_output.mp4",
            metadata={"duration_sec": 5, "file_size": 12},
        )

        data = client.get("/status/job1").json()

        assert data["status"] == "done"
        assert data["progress"] == 100
        assert data["project_id"] == "proj"
        assert data["download_url"] == "http://render.test/download/job1_output.mp4"
        assert data["metadata"] == {"duration_sec": 5, "file_size": 12}
        assert data["error"] is None

    def test_failed_job_reports_error(self, client, controller):
        controller.admit("job1")
        controller.set_status("job1", "error", error="Failed to download https://cdn.test/v.mp4")

        data = client.get("/status/job1").json()

        assert data["status"] == "error"
        assert data["error"] == "Failed to download https://cdn.test/v.mp4"


class TestDownload:
    def test_serves_rendered_file(self, client):
        output = Path(get_settings().temp_dir) / "job7_output.mp4"
        output.write_bytes(b"rendered-mp4")

        response = client.get("/download/job7_output.mp4")

        assert response.status_code == 200
        assert response.content == b"rendered-mp4"
        assert response.headers["content-type"] == "video/mp4"

    def test_missing_file(self, client):
        assert client.get("/download/nothing.mp4").status_code == 404

    def test_hidden_files_refused(self, client):
        (Path(get_settings().temp_dir) / ".secret").write_text("x")
        assert client.get("/download/.secret").status_code == 404


# =============================================================================
# Service endpoints
# =============================================================================


class TestServiceEndpoints:
    def test_root(self, client):
        data = client.get("/").json()
        assert data["name"] == "ffrender"
        assert "POST /render" in data["endpoints"]

    def test_health(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["ffmpeg"] is True
        assert data["active_jobs"] == 0
        assert data["max_concurrent_jobs"] == 5
        assert isinstance(data["uptime_seconds"], int)

    def test_effects_catalog(self, client):
        data = client.get("/effects").json()

        assert set(data["effects"]) >= {"color", "crop", "zoom", "speed", "fade", "watermark"}
        assert data["effects"]["speed"]["value"]["max"] == 4.0
        assert "cinematic" in data["color_presets"]
        assert data["quality_presets"]["ultra"] == {"crf": 15, "preset": "slow"}
        assert "poppins_bold" in data["fonts"]
