"""Compile render requests into filter graphs.

Flat mode applies a fixed stage order to one video and one audio input:
speed, crop, zoom, color, fade, then subtitles and text on top. Timeline
mode trims and concatenates video segments, delays and mixes audio
segments, and burns the aggregated subtitle entries onto the result.
"""

import logging
from dataclasses import dataclass

from ffrender.render.audio_filters import audio_effect_filters, speed_audio
from ffrender.render.graph import Filter, FilterChain, FilterGraph
from ffrender.render.subtitles import SubtitleCue, compile_subtitles
from ffrender.render.text_overlay import build_text_filter
from ffrender.render.video_filters import (
    DEFAULT_FPS,
    color_filters,
    crop_filters,
    fade_filters,
    speed_video,
    zoom_filters,
)
from ffrender.render.watermark import build_watermark
from ffrender.render.workspace import JobWorkspace
from ffrender.schemas.effects import Effects, SubtitleStyle, TextOverlay
from ffrender.schemas.render import TimelineEntry
from ffrender.services.font_service import FontService
from ffrender.utils.media_info import MediaInfo

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 10.0
DEFAULT_WIDTH = 1080
DEFAULT_HEIGHT = 1920


@dataclass
class SourceGeometry:
    """Duration and frame size the flat-mode stages are computed against."""

    duration: float = DEFAULT_DURATION
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    fps: float = DEFAULT_FPS

    @classmethod
    def from_media(cls, media: MediaInfo | None) -> "SourceGeometry":
        if media is None:
            return cls()
        return cls(
            duration=media.duration or DEFAULT_DURATION,
            width=media.width or DEFAULT_WIDTH,
            height=media.height or DEFAULT_HEIGHT,
            fps=media.fps or DEFAULT_FPS,
        )


class FilterGraphCompiler:
    """Builds the filter graph for one job.

    Subtitle documents and overlay text files are written into the job's
    workspace, so they are cleaned up with the rest of the job's files.
    """

    def __init__(self, workspace: JobWorkspace, fonts: FontService):
        self.workspace = workspace
        self.fonts = fonts

    # =========================================================================
    # Flat mode
    # =========================================================================

    def compile_flat(
        self,
        effects: Effects,
        video_path: str,
        audio_path: str,
        *,
        media: MediaInfo | None = None,
        cues: list[SubtitleCue] | None = None,
        text_overlay: TextOverlay | None = None,
        watermark_path: str | None = None,
    ) -> FilterGraph:
        geometry = SourceGeometry.from_media(media)
        speed = effects.speed_factor

        graph = FilterGraph()
        video_index = graph.add_input(video_path, "video")
        audio_index = graph.add_input(audio_path, "audio")
        graph.video_map = f"{video_index}:v"
        graph.audio_map = f"{audio_index}:a"

        video = graph.video_filters
        audio = graph.audio_filters

        video.extend(speed_video(speed))
        audio.extend(speed_audio(speed))

        if effects.crop:
            video.extend(crop_filters(effects.crop, geometry.width, geometry.height))

        if effects.zoom:
            video.extend(
                zoom_filters(effects.zoom, geometry.duration, geometry.width, geometry.height, geometry.fps)
            )

        if effects.color:
            video.extend(color_filters(effects.color))

        synced_fade = bool(effects.fade and effects.fade.active)
        if synced_fade:
            fade_video, fade_audio = fade_filters(effects.fade, geometry.duration, speed)
            video.extend(fade_video)
            audio.extend(fade_audio)

        if effects.audio:
            audio.extend(audio_effect_filters(effects.audio, geometry.duration, speed, synced_fade))

        if cues:
            subtitle_filter = self._subtitle_stage(
                cues, effects.subtitles or SubtitleStyle(), geometry.width, geometry.height, speed
            )
            if subtitle_filter is not None:
                video.append(subtitle_filter)

        if text_overlay is not None and text_overlay.text:
            text_filter = build_text_filter(
                text_overlay,
                self.fonts.resolve(text_overlay.font_family),
                self.workspace.path("_text.txt"),
            )
            if text_filter is not None:
                video.append(text_filter)

        if effects.watermark and watermark_path:
            wm_index = graph.add_input(watermark_path, "image")
            graph.watermark = build_watermark(effects.watermark, geometry.width, wm_index)

        logger.debug(
            f"[COMPILE] Flat graph: {len(video)} video stages, {len(audio)} audio stages, "
            f"watermark={graph.needs_watermark_input}"
        )
        return graph

    # =========================================================================
    # Timeline mode
    # =========================================================================

    def compile_timeline(
        self,
        entries: list[TimelineEntry],
        asset_map: dict[str, str],
        *,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
    ) -> FilterGraph:
        graph = FilterGraph()
        input_index: dict[str, int] = {}

        def input_for(url: str, kind: str) -> int:
            if url not in input_index:
                input_index[url] = graph.add_input(asset_map[url], kind)
            return input_index[url]

        videos = [e for e in entries if e.type == "video"]
        audios = [e for e in entries if e.type == "audio"]
        subtitles = [e for e in entries if e.type == "subtitle"]

        if videos:
            labels = []
            for k, entry in enumerate(videos):
                idx = input_for(entry.url, "video")
                label = f"v{k}"
                graph.chains.append(
                    FilterChain(
                        [f"{idx}:v"],
                        [
                            Filter("trim", options={"start": entry.start, "end": entry.end}),
                            Filter("setpts", ["PTS-STARTPTS"]),
                        ],
                        [label],
                    )
                )
                labels.append(label)

            graph.chains.append(
                FilterChain(labels, [Filter("concat", options={"n": len(labels), "v": 1, "a": 0})], ["vconcat"])
            )

            final_filters: list[Filter] = []
            cues = timeline_cues(subtitles)
            if cues:
                style = SubtitleStyle(animation=subtitles[0].style or "pop")
                subtitle_filter = self._subtitle_stage(cues, style, width, height, 1.0)
                if subtitle_filter is not None:
                    final_filters.append(subtitle_filter)
            graph.chains.append(FilterChain(["vconcat"], final_filters, ["vfinal"]))
            graph.video_filters = final_filters
            graph.video_map = "vfinal"
        elif subtitles:
            logger.warning("[COMPILE] Timeline has subtitles but no video segments, ignoring subtitles")

        if audios:
            labels = []
            for k, entry in enumerate(audios):
                idx = input_for(entry.url, "audio")
                delay_ms = round(entry.start * 1000)
                label = f"a{k}"
                graph.chains.append(
                    FilterChain([f"{idx}:a"], [Filter("adelay", [f"{delay_ms}|{delay_ms}"])], [label])
                )
                labels.append(label)

            if len(labels) == 1:
                graph.audio_map = labels[0]
            else:
                graph.chains.append(
                    FilterChain(
                        labels,
                        [Filter("amix", options={"inputs": len(labels), "duration": "longest"})],
                        ["outa"],
                    )
                )
                graph.audio_map = "outa"

        logger.debug(
            f"[COMPILE] Timeline graph: {len(videos)} video, {len(audios)} audio, "
            f"{len(subtitles)} subtitle entries, {len(graph.inputs)} inputs"
        )
        return graph

    # =========================================================================
    # Shared
    # =========================================================================

    def _subtitle_stage(
        self, cues: list[SubtitleCue], style: SubtitleStyle, width: int, height: int, speed: float
    ) -> Filter | None:
        return compile_subtitles(
            cues,
            style,
            self.workspace.path("_subs.ass"),
            width=width,
            height=height,
            fonts_dir=str(self.fonts.fonts_dir),
            speed=speed,
            font_name=self.fonts.family_name(style.font_family),
        )


def timeline_cues(entries: list[TimelineEntry]) -> list[SubtitleCue]:
    """Aggregate subtitle entries into one cue sequence, in submission order."""
    cues = []
    for entry in entries:
        if entry.end is None or not entry.text or not entry.text.strip():
            continue
        cues.append(SubtitleCue(start=entry.start, end=entry.end, text=entry.text.strip()))
    return cues
