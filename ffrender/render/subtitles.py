"""SRT parsing and ASS subtitle generation.

Cues are parsed from SRT text (or built from timeline entries), wrapped to
the frame width, rescaled for the playback speed and written out as an ASS
document that ffmpeg's ``subtitles`` filter burns into the video.
"""

import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path

from ffrender.render.graph import Filter, FilterPath
from ffrender.schemas.effects import SubtitleStyle

logger = logging.getLogger(__name__)

TIMING_RE = re.compile(
    r"(\d{2}):(\d{2}):(\d{2})[,.](\d{3})\s*-->\s*(\d{2}):(\d{2}):(\d{2})[,.](\d{3})"
)

MAX_LINE_CHARS = 50
CHAR_WIDTH_RATIO = 0.6

NAMED_COLORS = {
    "white": "#FFFFFF",
    "black": "#000000",
    "yellow": "#FFFF00",
    "red": "#FF0000",
    "green": "#00FF00",
    "blue": "#0000FF",
    "cyan": "#00FFFF",
    "magenta": "#FF00FF",
    "orange": "#FFA500",
    "gray": "#808080",
}


@dataclass(frozen=True)
class SubtitleCue:
    start: float
    end: float
    text: str


def _to_seconds(h: str, m: str, s: str, ms: str) -> float:
    return int(h) * 3600 + int(m) * 60 + int(s) + int(ms) / 1000


def parse_srt(content: str) -> list[SubtitleCue]:
    """Parse SRT text into cues.

    The sequence-number line is optional. Blocks whose timing line does not
    parse, or whose end is not after their start, are skipped.
    """
    cues: list[SubtitleCue] = []
    normalized = content.replace("\r\n", "\n").replace("\r", "\n").strip()
    if not normalized:
        return cues

    for block in re.split(r"\n\s*\n", normalized):
        lines = [line.strip() for line in block.strip().split("\n")]
        if len(lines) < 2:
            continue

        if lines[0].isdigit() and "-->" in lines[1]:
            timing_index = 1
        else:
            timing_index = 0

        match = TIMING_RE.search(lines[timing_index])
        if not match:
            logger.debug(f"[SUBTITLES] Skipping block with malformed timing: {lines[timing_index]!r}")
            continue

        groups = match.groups()
        start = _to_seconds(*groups[:4])
        end = _to_seconds(*groups[4:])
        text = " ".join(line for line in lines[timing_index + 1 :] if line)
        if end <= start or not text:
            continue
        cues.append(SubtitleCue(start=start, end=end, text=text))

    return cues


def format_ass_time(seconds: float) -> str:
    """Format seconds as ASS ``H:MM:SS.cc``."""
    total_cs = max(0, round(seconds * 100))
    hours, rem = divmod(total_cs, 360000)
    minutes, rem = divmod(rem, 6000)
    secs, cs = divmod(rem, 100)
    return f"{hours}:{minutes:02d}:{secs:02d}.{cs:02d}"


def parse_ass_time(value: str) -> float:
    hours, minutes, rest = value.split(":")
    return int(hours) * 3600 + int(minutes) * 60 + float(rest)


def hex_to_ass(color: str | None) -> str:
    """Convert ``#RRGGBB`` (or a basic color name) to ASS ``&H00BBGGRR``."""
    if not color:
        return "&H00FFFFFF"
    value = NAMED_COLORS.get(color.strip().lower(), color).lstrip("#")
    if len(value) != 6 or not re.fullmatch(r"[0-9A-Fa-f]{6}", value):
        return "&H00FFFFFF"
    rr, gg, bb = value[0:2], value[2:4], value[4:6]
    return f"&H00{bb}{gg}{rr}".upper()


def wrap_text(text: str, max_chars: int) -> str:
    """Greedy word wrap joined with ASS hard line breaks. Never splits words."""
    words = text.split()
    if not words:
        return ""
    lines: list[str] = []
    current = words[0]
    for word in words[1:]:
        if len(current) + 1 + len(word) <= max_chars:
            current = f"{current} {word}"
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return "\\N".join(lines)


def max_chars_per_line(width: int, font_size: int) -> int:
    return max(1, min(math.floor(width / (font_size * CHAR_WIDTH_RATIO)), MAX_LINE_CHARS))


def animation_markup(animation: str, primary: str, width: int, height: int) -> str:
    if animation == "pop":
        return "{\\fad(50,50)}{\\fscx0\\fscy0}{\\t(0,150,\\fscx100\\fscy100)}"
    if animation == "slide_up":
        cx = width // 2
        return f"{{\\fad(100,0)}}{{\\move({cx},{height + 50},{cx},{height - 50},0,300)}}"
    if animation == "karaoke":
        return f"{{\\1c&HFFFF00&}}{{\\t(0,200,\\1c{primary.replace('&H00', '&H')})}}"
    if animation == "fade":
        return "{\\fad(200,200)}"
    return ""


def _escape_ass_text(text: str) -> str:
    # Braces open override blocks in ASS
    return text.replace("{", "(").replace("}", ")")


def build_ass_document(
    cues: list[SubtitleCue],
    style: SubtitleStyle,
    *,
    width: int,
    height: int,
    speed: float = 1.0,
    font_name: str = "Arial",
) -> str:
    """Render cues into a complete ASS document."""
    primary = hex_to_ass(style.font_color)
    outline = hex_to_ass(style.stroke_color)
    max_chars = max_chars_per_line(width, style.font_size)
    time_scale = 1 / speed if speed else 1.0
    markup = animation_markup(style.animation, primary, width, height)

    lines = [
        "[Script Info]",
        "ScriptType: v4.00+",
        f"PlayResX: {width}",
        f"PlayResY: {height}",
        "WrapStyle: 1",
        "",
        "[V4+ Styles]",
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, "
        "BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, "
        "BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding",
        f"Style: Default,{font_name},{style.font_size},{primary},&H000000FF,{outline},"
        "&H60000000,1,0,0,0,100,100,0,0,1,2,0,2,10,10,50,1",
        "",
        "[Events]",
        "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text",
    ]

    for cue in cues:
        start = format_ass_time(cue.start * time_scale)
        end = format_ass_time(cue.end * time_scale)
        text = wrap_text(_escape_ass_text(cue.text), max_chars)
        lines.append(f"Dialogue: 0,{start},{end},Default,,0,0,0,,{markup}{text}")

    return "\n".join(lines) + "\n"


def compile_subtitles(
    cues: list[SubtitleCue],
    style: SubtitleStyle,
    output_path: str | Path,
    *,
    width: int,
    height: int,
    fonts_dir: str,
    speed: float = 1.0,
    font_name: str = "Arial",
) -> Filter | None:
    """Write the ASS document for ``cues`` and return its burn-in filter.

    Returns:
        The ``subtitles`` filter stage, or None when there are no cues.
    """
    if not cues:
        logger.info("[SUBTITLES] No cues after parsing, skipping subtitle stage")
        return None

    document = build_ass_document(
        cues, style, width=width, height=height, speed=speed, font_name=font_name
    )
    Path(output_path).write_text(document, encoding="utf-8")
    logger.info(f"[SUBTITLES] Wrote {len(cues)} cues to {output_path}")

    return Filter(
        "subtitles",
        [FilterPath(str(output_path))],
        {"fontsdir": FilterPath(fonts_dir)},
    )
