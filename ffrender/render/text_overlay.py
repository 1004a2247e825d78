"""drawtext overlay for flat-mode renders."""

import logging
import re
from pathlib import Path

from ffrender.render.graph import Expr, Filter, FilterPath
from ffrender.schemas.effects import TextOverlay

logger = logging.getLogger(__name__)

TEXT_PADDING = 30

_EMOJI_RE = re.compile(
    "[\U0001F000-\U0001FFFF\u2600-\u27BF\uFE00-\uFEFF]",
    flags=re.UNICODE,
)
# Printable ASCII plus Latin-1 Supplement / Latin Extended-A/B
_UNSUPPORTED_RE = re.compile(r"[^\x20-\x7E\u00C0-\u024F]")

_POSITIONS: dict[str, tuple[str, str]] = {
    "bottom_center": ("(w-text_w)/2", f"h-text_h-{TEXT_PADDING}"),
    "top_center": ("(w-text_w)/2", f"{TEXT_PADDING}"),
    "center": ("(w-text_w)/2", "(h-text_h)/2"),
    "bottom_left": (f"{TEXT_PADDING}", f"h-text_h-{TEXT_PADDING}"),
    "bottom_right": (f"w-text_w-{TEXT_PADDING}", f"h-text_h-{TEXT_PADDING}"),
    "top_left": (f"{TEXT_PADDING}", f"{TEXT_PADDING}"),
    "top_right": (f"w-text_w-{TEXT_PADDING}", f"{TEXT_PADDING}"),
}


def sanitize_text(text: str) -> str:
    """Strip characters the bundled fonts cannot draw and escape drawtext syntax.

    The text is passed through ``textfile``, so only drawtext's own
    expansion characters (backslash and percent) need escaping.
    """
    text = text.replace("\r\n", " ").replace("\n", " ")
    text = _EMOJI_RE.sub("", text)
    text = _UNSUPPORTED_RE.sub("", text)
    text = text.replace('"', "")
    text = text.replace("\\", "\\\\").replace("%", "%%")
    return text.strip()


def build_text_filter(
    overlay: TextOverlay, font_file: str, text_file: str | Path
) -> Filter | None:
    """Write the overlay text to ``text_file`` and build its drawtext stage.

    Returns:
        The drawtext filter, or None when nothing printable is left.
    """
    clean = sanitize_text(overlay.text or "")
    if not clean:
        logger.info("[TEXT] Overlay text empty after sanitizing, skipping")
        return None

    Path(text_file).write_text(clean, encoding="utf-8")

    x, y = _POSITIONS.get(overlay.position, _POSITIONS["bottom_center"])
    options: dict = {
        "fontfile": FilterPath(font_file),
        "textfile": FilterPath(str(text_file)),
        "fontsize": overlay.font_size,
        "fontcolor": overlay.font_color,
        "borderw": overlay.stroke_width,
    }
    if overlay.stroke_width > 0:
        options["bordercolor"] = overlay.stroke_color

    if overlay.animation == "slide_up":
        final_y = "(h-text_h)/2" if overlay.position == "center" else f"h-text_h-{TEXT_PADDING}"
        y = Expr(f"if(lt(t,1),h-(h-{final_y})*t,{final_y})")
    options["x"] = x
    options["y"] = y

    if overlay.bg_color:
        options["box"] = 1
        options["boxcolor"] = f"{overlay.bg_color}@{overlay.bg_opacity:g}"
        options["boxborderw"] = overlay.bg_padding

    if overlay.shadow_color:
        options["shadowcolor"] = overlay.shadow_color
        options["shadowx"] = overlay.shadow_x
        options["shadowy"] = overlay.shadow_y

    if overlay.line_spacing:
        options["line_spacing"] = overlay.line_spacing

    if overlay.animation == "fade_in":
        options["alpha"] = Expr("if(lt(t,1),t,1)")

    return Filter("drawtext", options=options)
