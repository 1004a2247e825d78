"""Effect category models for flat-mode render requests.

Every numeric parameter is clamped into its documented range during
validation; out-of-range values never cause a rejection. The compiler can
therefore embed model values directly.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

RANGES: dict[str, dict[str, tuple[float, float]]] = {
    "color": {
        "brightness": (-1.0, 1.0),
        "contrast": (0.0, 3.0),
        "saturation": (0.0, 3.0),
        "gamma": (0.1, 10.0),
    },
    "zoom": {"intensity": (0.05, 0.5)},
    "speed": {"value": (0.25, 4.0)},
    "fade": {"fade_in": (0.0, 5.0), "fade_out": (0.0, 5.0)},
    "watermark": {"scale": (0.05, 0.5), "opacity": (0.0, 1.0)},
    "subtitles": {"font_size": (10, 100)},
    "text": {
        "font_size": (10, 120),
        "stroke_width": (0, 10),
        "bg_opacity": (0.0, 1.0),
        "bg_padding": (0, 30),
        "shadow_x": (0, 20),
        "shadow_y": (0, 20),
        "line_spacing": (0, 30),
    },
    "audio": {"volume": (0.0, 3.0), "fade_in": (0.0, 5.0), "fade_out": (0.0, 5.0)},
    "output": {"max_duration": (1.0, 3600.0)},
}


def clamp(value: float | None, low: float, high: float) -> float | None:
    if value is None:
        return None
    return max(low, min(high, value))


def _clamper(category: str, *names: str):
    """Build a field validator clamping ``names`` to their RANGES entry."""
    ranges = RANGES[category]

    def _validate(cls, v, info):
        if v is None:
            return v
        low, high = ranges[info.field_name]
        return clamp(v, low, high)

    return field_validator(*names, mode="after")(classmethod(_validate))


class _Category(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class ColorEffect(_Category):
    preset: str | None = None
    brightness: float | None = None
    contrast: float | None = None
    saturation: float | None = None
    gamma: float | None = None

    clamp_ranges = _clamper("color", "brightness", "contrast", "saturation", "gamma")


class CropEffect(_Category):
    aspect_ratio: str | None = Field(default=None, pattern=r"^\d+(\.\d+)?:\d+(\.\d+)?$")
    position: Literal["center", "top", "bottom"] = "center"
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)


class ZoomEffect(_Category):
    type: Literal["in", "out", "pan_left", "pan_right"] = "in"
    intensity: float = 0.2

    clamp_ranges = _clamper("zoom", "intensity")


class SpeedEffect(_Category):
    value: float = 1.0

    clamp_ranges = _clamper("speed", "value")


class FadeEffect(_Category):
    fade_in: float = Field(default=0.0, alias="in")
    fade_out: float = Field(default=0.0, alias="out")

    clamp_ranges = _clamper("fade", "fade_in", "fade_out")

    @property
    def active(self) -> bool:
        return bool(self.fade_in or self.fade_out)


WatermarkPosition = Literal["top_left", "top_right", "bottom_left", "bottom_right", "center"]


class WatermarkEffect(_Category):
    url: str
    position: WatermarkPosition = "bottom_right"
    scale: float = 0.15
    opacity: float = 0.7

    clamp_ranges = _clamper("watermark", "scale", "opacity")


SubtitleAnimation = Literal["pop", "slide_up", "karaoke", "fade", "none"]


class SubtitleStyle(_Category):
    font_family: str = "poppins_bold"
    font_size: int = 24
    font_color: str = "#FFFFFF"
    stroke_color: str = "#000000"
    animation: SubtitleAnimation = "pop"

    clamp_ranges = _clamper("subtitles", "font_size")


# Color name, #RRGGBB[AA] or 0xRRGGBB[AA], optionally with @alpha
COLOR_PATTERN = r"^(?:[A-Za-z]+|(?:#|0x)[0-9A-Fa-f]{6}(?:[0-9A-Fa-f]{2})?)(?:@(?:0|1|0?\.\d+|1\.0+))?$"

TextPosition = Literal[
    "bottom_center", "top_center", "center", "bottom_left", "bottom_right", "top_left", "top_right"
]


class TextOverlay(_Category):
    text: str = ""
    font_family: str = "poppins_regular"
    font_size: int = 28
    font_color: str = Field(default="white", pattern=COLOR_PATTERN)
    stroke_color: str = Field(default="black", pattern=COLOR_PATTERN)
    stroke_width: int = 2
    position: TextPosition = "bottom_center"
    bg_color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    bg_opacity: float = 0.6
    bg_padding: int = 10
    shadow_color: str | None = Field(default=None, pattern=COLOR_PATTERN)
    shadow_x: int = 2
    shadow_y: int = 2
    line_spacing: int | None = None
    animation: Literal["none", "fade_in", "slide_up"] = "none"

    clamp_ranges = _clamper(
        "text",
        "font_size",
        "stroke_width",
        "bg_opacity",
        "bg_padding",
        "shadow_x",
        "shadow_y",
        "line_spacing",
    )


class AudioEffect(_Category):
    volume: float = 1.0
    fade_in: float = 0.0
    fade_out: float = 0.0
    normalize: bool = False

    clamp_ranges = _clamper("audio", "volume", "fade_in", "fade_out")


QualityName = Literal["low", "medium", "high", "ultra"]


class OutputOptions(_Category):
    quality: QualityName = "medium"
    max_duration: float | None = None

    clamp_ranges = _clamper("output", "max_duration")


class Effects(_Category):
    """All flat-mode effect categories. Absent categories are skipped."""

    color: ColorEffect | None = None
    crop: CropEffect | None = None
    zoom: ZoomEffect | None = None
    speed: SpeedEffect | None = None
    fade: FadeEffect | None = None
    watermark: WatermarkEffect | None = None
    subtitles: SubtitleStyle | None = None
    text: TextOverlay | None = None
    audio: AudioEffect | None = None
    output: OutputOptions | None = None

    @field_validator("speed", mode="before")
    @classmethod
    def accept_bare_speed(cls, v: Any) -> Any:
        """Allow ``"speed": 1.5`` as shorthand for ``{"value": 1.5}``."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return {"value": v}
        return v

    @property
    def speed_factor(self) -> float:
        return self.speed.value if self.speed else 1.0


def _field_schema(model: type[BaseModel], category: str) -> dict[str, Any]:
    ranges = RANGES.get(category, {})
    params: dict[str, Any] = {}
    for name, info in model.model_fields.items():
        key = info.alias or name
        if info.is_required():
            entry: dict[str, Any] = {"required": True}
        else:
            entry = {"default": info.default}
        if key in ranges or name in ranges:
            low, high = ranges.get(key) or ranges[name]
            entry.update({"type": "number", "min": low, "max": high})
        annotation = info.annotation
        choices = getattr(annotation, "__args__", None)
        if choices and all(isinstance(c, str) for c in choices):
            entry.update({"type": "string", "enum": list(choices)})
        params[key] = entry
    return params


def effects_schema() -> dict[str, Any]:
    """Describe every effect category, its parameters, ranges and defaults."""
    categories = {
        "color": ColorEffect,
        "crop": CropEffect,
        "zoom": ZoomEffect,
        "speed": SpeedEffect,
        "fade": FadeEffect,
        "watermark": WatermarkEffect,
        "subtitles": SubtitleStyle,
        "text": TextOverlay,
        "audio": AudioEffect,
        "output": OutputOptions,
    }
    return {name: _field_schema(model, name) for name, model in categories.items()}
