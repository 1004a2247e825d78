"""Video stage builders for flat-mode effects.

Each builder returns a (possibly empty) list of :class:`Filter` stages. The
caller is responsible for ordering: speed, crop, zoom, color, fade.
"""

from ffrender.render.graph import Expr, Filter
from ffrender.render.presets import COLOR_PRESETS, IDENTITY_GRADE, ColorGrade
from ffrender.schemas.effects import ColorEffect, CropEffect, FadeEffect, ZoomEffect

DEFAULT_FPS = 30


def speed_video(speed: float) -> list[Filter]:
    if not speed or speed == 1.0:
        return []
    return [Filter("setpts", [f"PTS/{speed:g}"])]


def _parse_ratio(aspect_ratio: str) -> tuple[float, float]:
    a, b = aspect_ratio.split(":")
    return float(a), float(b)


def crop_filters(crop: CropEffect, width: int, height: int) -> list[Filter]:
    """Aspect-ratio crop and/or explicit resize with letterboxing."""
    filters: list[Filter] = []

    if crop.aspect_ratio:
        a, b = _parse_ratio(crop.aspect_ratio)
        ra, rb = f"{a:g}", f"{b:g}"
        if width / height > a / b:
            crop_w = f"ih*{ra}/{rb}"
            x = f"(iw-{crop_w})/2" if crop.position == "center" else "0"
            filters.append(Filter("crop", [crop_w, "ih", x, "0"]))
        else:
            crop_h = f"iw*{rb}/{ra}"
            if crop.position == "center":
                y = f"(ih-{crop_h})/2"
            elif crop.position == "bottom":
                y = f"ih-{crop_h}"
            else:
                y = "0"
            filters.append(Filter("crop", ["iw", crop_h, "0", y]))

    if crop.width and crop.height:
        filters.append(
            Filter(
                "scale",
                [crop.width, crop.height],
                {"force_original_aspect_ratio": "decrease"},
            )
        )
        filters.append(
            Filter("pad", [crop.width, crop.height, "(ow-iw)/2", "(oh-ih)/2", "black"])
        )
    elif crop.width:
        filters.append(Filter("scale", [crop.width, -2]))
    elif crop.height:
        filters.append(Filter("scale", [-2, crop.height]))

    return filters


def zoom_filters(
    zoom: ZoomEffect, duration: float, width: int, height: int, fps: float = DEFAULT_FPS
) -> list[Filter]:
    """Ken Burns zoom/pan over the clip duration."""
    fps = fps or DEFAULT_FPS
    intensity = zoom.intensity
    max_zoom = f"{1 + intensity:g}"
    frames = max(1, round(duration * fps))
    step = f"{intensity / frames:.6f}"
    common = {"d": frames, "s": f"{width}x{height}", "fps": f"{fps:g}"}
    center_x = Expr("iw/2-(iw/zoom/2)")
    center_y = Expr("ih/2-(ih/zoom/2)")

    if zoom.type == "out":
        options = {
            "z": Expr(f"if(eq(on,1),{max_zoom},max(zoom-{step},1))"),
            "x": center_x,
            "y": center_y,
        }
    elif zoom.type == "pan_left":
        options = {
            "z": Expr(max_zoom),
            "x": Expr(f"iw/{max_zoom}-iw/{max_zoom}/zoom*on/{frames}"),
            "y": center_y,
        }
    elif zoom.type == "pan_right":
        options = {
            "z": Expr(max_zoom),
            "x": Expr(f"iw/{max_zoom}/zoom*on/{frames}"),
            "y": center_y,
        }
    else:
        options = {
            "z": Expr(f"min(zoom+{step},{max_zoom})"),
            "x": center_x,
            "y": center_y,
        }

    return [Filter("zoompan", options={**options, **common})]


def resolve_grade(color: ColorEffect) -> ColorGrade:
    """Preset baseline with explicit values taking precedence."""
    base = COLOR_PRESETS.get(color.preset or "", IDENTITY_GRADE)
    return ColorGrade(
        brightness=base.brightness if color.brightness is None else color.brightness,
        contrast=base.contrast if color.contrast is None else color.contrast,
        saturation=base.saturation if color.saturation is None else color.saturation,
        gamma=base.gamma if color.gamma is None else color.gamma,
    )


def color_filters(color: ColorEffect) -> list[Filter]:
    grade = resolve_grade(color)
    options: dict[str, float] = {}
    for name in ("brightness", "contrast", "saturation", "gamma"):
        value = getattr(grade, name)
        if value != getattr(IDENTITY_GRADE, name):
            options[name] = value
    if not options:
        return []
    return [Filter("eq", options=options)]


def effective_duration(duration: float, speed: float) -> float:
    return duration / speed if speed else duration


def fade_filters(fade: FadeEffect, duration: float, speed: float) -> tuple[list[Filter], list[Filter]]:
    """Paired video/audio fades anchored at the effective duration.

    Returns:
        Tuple of (video_filters, audio_filters).
    """
    video: list[Filter] = []
    audio: list[Filter] = []
    eff = effective_duration(duration, speed)

    if fade.fade_in:
        video.append(Filter("fade", options={"t": "in", "st": 0, "d": fade.fade_in}))
        audio.append(Filter("afade", options={"t": "in", "st": 0, "d": fade.fade_in}))
    if fade.fade_out:
        start = f"{max(0.0, eff - fade.fade_out):.2f}"
        video.append(Filter("fade", options={"t": "out", "st": start, "d": fade.fade_out}))
        audio.append(Filter("afade", options={"t": "out", "st": start, "d": fade.fade_out}))

    return video, audio
