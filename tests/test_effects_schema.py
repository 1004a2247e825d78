"""Tests for effect models: clamping, aliases and the discovery schema."""

import pytest
from pydantic import ValidationError

from ffrender.render.presets import QUALITY_PRESETS, output_args
from ffrender.schemas.effects import (
    RANGES,
    ColorEffect,
    CropEffect,
    Effects,
    OutputOptions,
    TextOverlay,
    effects_schema,
)


class TestClamping:
    def test_values_are_clamped_not_rejected(self):
        effects = Effects.model_validate(
            {
                "color": {"brightness": -4, "saturation": 9},
                "zoom": {"intensity": 0.01},
                "speed": {"value": 10},
                "fade": {"in": 30},
                "watermark": {"url": "https://cdn.test/logo.png", "opacity": 2},
            }
        )

        assert effects.color.brightness == -1.0
        assert effects.color.saturation == 3.0
        assert effects.zoom.intensity == 0.05
        assert effects.speed.value == 4.0
        assert effects.fade.fade_in == 5.0
        assert effects.watermark.opacity == 1.0

    def test_in_range_values_untouched(self):
        color = ColorEffect(contrast=1.3)
        assert color.contrast == 1.3
        assert color.brightness is None

    def test_text_and_output_ranges(self):
        text = TextOverlay(text="hi", font_size=500, stroke_width=-3, bg_padding=99)
        assert (text.font_size, text.stroke_width, text.bg_padding) == (120, 0, 30)
        assert OutputOptions(max_duration=0.1).max_duration == 1.0
        assert OutputOptions(max_duration=99999).max_duration == 3600.0


class TestParsing:
    def test_fade_uses_in_out_keys(self):
        effects = Effects.model_validate({"fade": {"in": 1.5, "out": 2}})
        assert effects.fade.fade_in == 1.5
        assert effects.fade.fade_out == 2.0
        assert effects.fade.active

    def test_bare_speed_number(self):
        assert Effects.model_validate({"speed": 1.5}).speed_factor == 1.5
        assert Effects.model_validate({"speed": {"value": 0.5}}).speed_factor == 0.5
        assert Effects().speed_factor == 1.0

    def test_unknown_keys_ignored(self):
        effects = Effects.model_validate({"sparkle": True, "color": {"preset": "warm", "hue": 3}})
        assert effects.color.preset == "warm"

    def test_invalid_aspect_ratio_rejected(self):
        with pytest.raises(ValidationError):
            CropEffect(aspect_ratio="wide")

    def test_watermark_requires_url(self):
        with pytest.raises(ValidationError):
            Effects.model_validate({"watermark": {"position": "center"}})


class TestEffectsSchema:
    def test_every_category_listed(self):
        schema = effects_schema()
        assert set(schema) == {
            "color", "crop", "zoom", "speed", "fade",
            "watermark", "subtitles", "text", "audio", "output",
        }

    def test_ranges_and_defaults(self):
        schema = effects_schema()
        assert schema["zoom"]["intensity"] == {"default": 0.2, "type": "number", "min": 0.05, "max": 0.5}
        assert schema["fade"]["in"]["max"] == RANGES["fade"]["fade_in"][1]
        assert schema["zoom"]["type"]["enum"] == ["in", "out", "pan_left", "pan_right"]
        assert schema["watermark"]["url"] == {"required": True}


class TestOutputArgs:
    def test_default_quality(self):
        args = output_args(None)
        assert args[:6] == ["-c:v", "libx264", "-preset", "fast", "-crf", "23"]
        assert args[-1] == "-y"
        assert "-shortest" in args

    def test_duration_cap_comes_first(self):
        args = output_args(OutputOptions(quality="high", max_duration=60), audio_bitrate="192k")
        assert args[:2] == ["-t", "60"]
        assert args[args.index("-crf") + 1] == str(QUALITY_PRESETS["high"].crf)
        assert args[args.index("-b:a") + 1] == "192k"
