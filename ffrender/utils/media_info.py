"""Media file information utilities using FFprobe."""

import asyncio
import json
import os
import subprocess
from dataclasses import dataclass

from ffrender.config import get_settings

DEFAULT_FPS = 30.0


def _get_settings():
    """Get settings lazily to avoid import issues in tests."""
    return get_settings()


@dataclass
class MediaInfo:
    """Media file information."""

    duration: float = 0.0
    width: int | None = None
    height: int | None = None
    fps: float = DEFAULT_FPS
    file_size: int = 0
    has_video: bool = False
    has_audio: bool = False

    @property
    def resolution(self) -> str | None:
        if self.width and self.height:
            return f"{self.width}x{self.height}"
        return None

    def to_dict(self) -> dict:
        return {
            "duration_sec": round(self.duration),
            "duration": self.duration,
            "resolution": self.resolution,
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
            "file_size": self.file_size,
        }


def parse_fps(value: str | float | int | None) -> float:
    """
    Normalize an ffprobe frame rate.

    Args:
        value: Rational string ("30000/1001"), decimal string or number

    Returns:
        Frames per second, 30.0 for anything unparseable or non-positive
    """
    if value is None:
        return DEFAULT_FPS
    text = str(value).strip()
    try:
        if "/" in text:
            num, den = text.split("/", 1)
            den_value = float(den)
            if den_value <= 0:
                return DEFAULT_FPS
            fps = float(num) / den_value
        else:
            fps = float(text)
    except ValueError:
        return DEFAULT_FPS
    if fps != fps or fps <= 0:
        return DEFAULT_FPS
    return fps


def _run_ffprobe(file_path: str, *args) -> dict:
    """Run ffprobe and return parsed JSON."""
    settings = _get_settings()
    cmd = [
        settings.ffprobe_path,
        "-v", "quiet",
        "-print_format", "json",
        *args,
        file_path,
    ]

    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise RuntimeError(f"ffprobe failed: {result.stderr}")

    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse ffprobe output: {e}")


def get_media_info(file_path: str) -> MediaInfo:
    """
    Get media file information.

    Args:
        file_path: Path to media file

    Returns:
        MediaInfo with duration, dimensions, fps and size

    Raises:
        RuntimeError: If ffprobe fails
    """
    data = _run_ffprobe(file_path, "-show_format", "-show_streams")
    info = MediaInfo()

    format_info = data.get("format", {})
    if "duration" in format_info:
        info.duration = float(format_info["duration"])
    if "size" in format_info:
        info.file_size = int(format_info["size"])
    else:
        info.file_size = os.path.getsize(file_path)

    for stream in data.get("streams", []):
        codec_type = stream.get("codec_type")
        if codec_type == "video" and not info.has_video:
            info.has_video = True
            info.width = stream.get("width")
            info.height = stream.get("height")
            info.fps = parse_fps(stream.get("r_frame_rate") or stream.get("avg_frame_rate"))
            if not info.duration and "duration" in stream:
                info.duration = float(stream["duration"])
        elif codec_type == "audio":
            info.has_audio = True

    return info


async def probe(file_path: str) -> MediaInfo:
    """Async wrapper around get_media_info (ffprobe runs in a worker thread)."""
    return await asyncio.to_thread(get_media_info, str(file_path))
