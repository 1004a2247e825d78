"""Color grading and encoder quality presets."""

from dataclasses import dataclass

from ffrender.schemas.effects import OutputOptions


@dataclass(frozen=True)
class ColorGrade:
    brightness: float = 0.0
    contrast: float = 1.0
    saturation: float = 1.0
    gamma: float = 1.0


IDENTITY_GRADE = ColorGrade()

COLOR_PRESETS: dict[str, ColorGrade] = {
    "cinematic": ColorGrade(brightness=0.02, contrast=1.15, saturation=0.85, gamma=0.95),
    "warm": ColorGrade(brightness=0.05, contrast=1.05, saturation=1.2, gamma=1.0),
    "cool": ColorGrade(brightness=0.0, contrast=1.1, saturation=0.9, gamma=1.05),
    "vintage": ColorGrade(brightness=0.08, contrast=0.9, saturation=0.6, gamma=1.1),
    "dramatic": ColorGrade(brightness=-0.05, contrast=1.4, saturation=1.1, gamma=0.85),
    "bw": ColorGrade(brightness=0.0, contrast=1.2, saturation=0.0, gamma=1.0),
    "vibrant": ColorGrade(brightness=0.03, contrast=1.1, saturation=1.5, gamma=1.0),
    "muted": ColorGrade(brightness=0.02, contrast=0.95, saturation=0.5, gamma=1.05),
    "noir": ColorGrade(brightness=-0.1, contrast=1.5, saturation=0.0, gamma=0.8),
}


@dataclass(frozen=True)
class QualityPreset:
    crf: int
    preset: str


QUALITY_PRESETS: dict[str, QualityPreset] = {
    "low": QualityPreset(crf=28, preset="faster"),
    "medium": QualityPreset(crf=23, preset="fast"),
    "high": QualityPreset(crf=18, preset="medium"),
    "ultra": QualityPreset(crf=15, preset="slow"),
}

DEFAULT_QUALITY = "medium"


def output_args(options: OutputOptions | None, audio_bitrate: str = "128k") -> list[str]:
    """Build the ffmpeg encoding arguments for an output options block.

    The optional duration cap comes first so it trims before encoding.
    """
    options = options or OutputOptions()
    quality = QUALITY_PRESETS.get(options.quality, QUALITY_PRESETS[DEFAULT_QUALITY])

    args: list[str] = []
    if options.max_duration:
        args.extend(["-t", f"{options.max_duration:g}"])
    args.extend(
        [
            "-c:v", "libx264",
            "-preset", quality.preset,
            "-crf", str(quality.crf),
            "-c:a", "aac",
            "-b:a", audio_bitrate,
            "-shortest",
            "-movflags", "+faststart",
            "-y",
        ]
    )
    return args
