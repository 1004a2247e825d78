"""Run ffmpeg against a compiled filter graph."""

import asyncio
import logging
import shlex
from pathlib import Path

from ffrender.config import get_settings
from ffrender.exceptions import RenderError
from ffrender.render.graph import FilterGraph, render_filter_complex
from ffrender.render.presets import output_args
from ffrender.schemas.effects import OutputOptions

logger = logging.getLogger(__name__)

# Keep the job error readable; the full stderr is logged
STDERR_TAIL_CHARS = 2000


class RenderExecutor:
    """Invokes exactly one ffmpeg process per job. Never retries."""

    def __init__(self, ffmpeg_path: str | None = None, audio_bitrate: str | None = None):
        settings = get_settings()
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.audio_bitrate = audio_bitrate or settings.audio_bitrate

    def build_command(
        self, graph: FilterGraph, output_path: str | Path, output: OutputOptions | None = None
    ) -> list[str]:
        cmd = [self.ffmpeg_path, "-hide_banner", "-loglevel", "error"]
        for graph_input in graph.inputs:
            cmd.extend(["-i", graph_input.path])

        filter_complex, maps = render_filter_complex(graph)
        if filter_complex:
            cmd.extend(["-filter_complex", filter_complex])
        for target in maps:
            cmd.extend(["-map", target])

        cmd.extend(output_args(output, self.audio_bitrate))
        cmd.append(str(output_path))
        return cmd

    async def run(
        self, graph: FilterGraph, output_path: str | Path, output: OutputOptions | None = None
    ) -> Path:
        """
        Render the graph into ``output_path``.

        Args:
            graph: Compiled filter graph
            output_path: Destination file
            output: Quality preset and optional duration cap

        Returns:
            Path of the rendered file

        Raises:
            RenderError: If ffmpeg exits non-zero or produces no file
        """
        cmd = self.build_command(graph, output_path, output)
        logger.info(f"[RENDER] Running ffmpeg with {len(graph.inputs)} inputs -> {output_path}")
        logger.debug(f"[RENDER] Command: {shlex.join(cmd)}")

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await proc.communicate()

        if proc.returncode != 0:
            stderr_text = stderr.decode("utf-8", errors="replace")
            logger.error(f"[RENDER] FFmpeg failed (exit {proc.returncode}): {stderr_text[-STDERR_TAIL_CHARS:]}")
            raise RenderError(stderr=stderr_text[-STDERR_TAIL_CHARS:], returncode=proc.returncode)

        path = Path(output_path)
        if not path.exists():
            raise RenderError(f"FFmpeg reported success but {path.name} was not created")

        logger.info(f"[RENDER] Completed: {path} ({path.stat().st_size} bytes)")
        return path


async def check_ffmpeg(ffmpeg_path: str | None = None) -> str | None:
    """Return ffmpeg's version banner, or None when it cannot be run."""
    path = ffmpeg_path or get_settings().ffmpeg_path
    try:
        proc = await asyncio.create_subprocess_exec(
            path,
            "-version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, _ = await proc.communicate()
    except OSError as e:
        logger.error(f"[RENDER] FFmpeg not available at {path}: {e}")
        return None
    if proc.returncode != 0:
        logger.error(f"[RENDER] FFmpeg at {path} exited with {proc.returncode}")
        return None
    first_line = stdout.decode("utf-8", errors="replace").splitlines()
    return first_line[0] if first_line else "ffmpeg"
