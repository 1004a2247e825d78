"""Watermark placement."""

from ffrender.render.graph import WatermarkOverlay
from ffrender.schemas.effects import WatermarkEffect

WATERMARK_PADDING = 20

_POSITIONS: dict[str, tuple[str, str]] = {
    "top_left": (f"{WATERMARK_PADDING}", f"{WATERMARK_PADDING}"),
    "top_right": (f"W-w-{WATERMARK_PADDING}", f"{WATERMARK_PADDING}"),
    "bottom_left": (f"{WATERMARK_PADDING}", f"H-h-{WATERMARK_PADDING}"),
    "bottom_right": (f"W-w-{WATERMARK_PADDING}", f"H-h-{WATERMARK_PADDING}"),
    "center": ("(W-w)/2", "(H-h)/2"),
}


def build_watermark(watermark: WatermarkEffect, video_width: int, input_index: int) -> WatermarkOverlay:
    """Describe the overlay of the watermark image read from ``input_index``.

    The image is scaled to ``scale`` times the video width, keeping its
    aspect ratio.
    """
    x, y = _POSITIONS.get(watermark.position, _POSITIONS["bottom_right"])
    return WatermarkOverlay(
        input_index=input_index,
        width=max(1, round(video_width * watermark.scale)),
        opacity=watermark.opacity,
        x=x,
        y=y,
    )
