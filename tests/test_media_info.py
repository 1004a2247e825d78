"""Tests for ffprobe parsing (subprocess is patched)."""

import json
from unittest.mock import MagicMock, patch

import pytest

from ffrender.utils.media_info import MediaInfo, get_media_info, parse_fps


def ffprobe_result(data: dict | None = None, returncode: int = 0, stdout: str | None = None) -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout if stdout is not None else json.dumps(data or {})
    result.stderr = "" if returncode == 0 else "Invalid data found when processing input"
    return result


class TestParseFps:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("30/1", 30.0),
            ("25", 25.0),
            (24, 24.0),
            ("0/0", 30.0),
            ("abc", 30.0),
            (None, 30.0),
            ("-5", 30.0),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_fps(value) == expected

    def test_ntsc_rate(self):
        assert parse_fps("30000/1001") == pytest.approx(29.97, abs=0.01)


class TestGetMediaInfo:
    def test_video_and_audio_streams(self):
        data = {
            "format": {"duration": "12.5", "size": "4096"},
            "streams": [
                {"codec_type": "video", "width": 1080, "height": 1920, "r_frame_rate": "30/1"},
                {"codec_type": "audio"},
            ],
        }
        with patch("ffrender.utils.media_info.subprocess.run", return_value=ffprobe_result(data)) as mock_run:
            info = get_media_info("/in/v.mp4")

        assert info == MediaInfo(
            duration=12.5, width=1080, height=1920, fps=30.0, file_size=4096, has_video=True, has_audio=True
        )
        assert info.resolution == "1080x1920"
        cmd = mock_run.call_args.args[0]
        assert cmd[-1] == "/in/v.mp4"
        assert "-show_streams" in cmd

    def test_stream_duration_used_when_format_lacks_it(self, temp_output_dir):
        path = temp_output_dir / "a.mp3"
        path.write_bytes(b"123")
        data = {"format": {}, "streams": [{"codec_type": "video", "duration": "3.0"}]}
        with patch("ffrender.utils.media_info.subprocess.run", return_value=ffprobe_result(data)):
            info = get_media_info(str(path))

        assert info.duration == 3.0
        assert info.file_size == 3
        assert info.resolution is None

    def test_ffprobe_failure(self):
        with patch("ffrender.utils.media_info.subprocess.run", return_value=ffprobe_result(returncode=1)):
            with pytest.raises(RuntimeError, match="ffprobe failed"):
                get_media_info("/in/broken.mp4")

    def test_unparseable_output(self):
        with patch("ffrender.utils.media_info.subprocess.run", return_value=ffprobe_result(stdout="not json")):
            with pytest.raises(RuntimeError, match="Failed to parse"):
                get_media_info("/in/v.mp4")

    def test_to_dict(self):
        info = MediaInfo(duration=12.6, width=1920, height=1080, file_size=10)
        data = info.to_dict()
        assert data["duration_sec"] == 13
        assert data["resolution"] == "1920x1080"
