"""Tests for the drawtext overlay and watermark placement."""

import pytest
from pydantic import ValidationError

from ffrender.render.graph import FilterGraph, render_filter_complex
from ffrender.render.text_overlay import build_text_filter, sanitize_text
from ffrender.render.watermark import build_watermark
from ffrender.schemas.effects import TextOverlay, WatermarkEffect


class TestSanitizeText:
    def test_strips_emoji_and_unsupported(self):
        assert sanitize_text("Hello \U0001F600 world ☃") == "Hello  world"
        assert sanitize_text("café 世界") == "café"

    def test_escapes_drawtext_expansion(self):
        assert sanitize_text("100% done") == "100%% done"
        assert sanitize_text("a\\b") == "a\\\\b"

    def test_flattens_newlines_and_quotes(self):
        assert sanitize_text('say "hi"\nthere') == "say hi there"


class TestBuildTextFilter:
    def test_minimal_overlay(self, temp_output_dir):
        text_file = temp_output_dir / "job123_text.txt"
        f = build_text_filter(TextOverlay(text="Subscribe!"), "/fonts/poppins.ttf", text_file)

        assert text_file.read_text(encoding="utf-8") == "Subscribe!"
        assert f.render() == (
            f"drawtext=fontfile='/fonts/poppins.ttf':textfile='{text_file}'"
            ":fontsize=28:fontcolor=white:borderw=2:bordercolor=black"
            ":x=(w-text_w)/2:y=h-text_h-30"
        )

    def test_empty_after_sanitizing_is_skipped(self, temp_output_dir):
        text_file = temp_output_dir / "t.txt"
        assert build_text_filter(TextOverlay(text="\U0001F600"), "/f.ttf", text_file) is None
        assert not text_file.exists()

    def test_box_shadow_and_spacing(self, temp_output_dir):
        overlay = TextOverlay(
            text="Box",
            position="top_right",
            stroke_width=0,
            bg_color="black",
            bg_opacity=0.5,
            bg_padding=12,
            shadow_color="gray",
            line_spacing=8,
        )
        f = build_text_filter(overlay, "/f.ttf", temp_output_dir / "t.txt")

        assert "bordercolor" not in f.options
        assert f.options["x"] == "w-text_w-30"
        assert f.options["y"] == "30"
        assert f.options["boxcolor"] == "black@0.5"
        assert f.options["boxborderw"] == 12
        assert (f.options["shadowx"], f.options["shadowy"]) == (2, 2)
        assert f.options["line_spacing"] == 8

    def test_animations(self, temp_output_dir):
        fade = build_text_filter(
            TextOverlay(text="a", animation="fade_in"), "/f.ttf", temp_output_dir / "a.txt"
        )
        slide = build_text_filter(
            TextOverlay(text="b", animation="slide_up", position="center"),
            "/f.ttf",
            temp_output_dir / "b.txt",
        )

        assert ":alpha='if(lt(t,1),t,1)'" in fade.render()
        assert ":y='if(lt(t,1),h-(h-(h-text_h)/2)*t,(h-text_h)/2)'" in slide.render()


class TestOverlayColors:
    @pytest.mark.parametrize("color", ["white", "#FF8800", "0xFF8800", "#FF880080", "black@0.5"])
    def test_valid_colors_accepted(self, color):
        assert TextOverlay(text="hi", font_color=color).font_color == color

    @pytest.mark.parametrize(
        "field", ["font_color", "stroke_color", "bg_color", "shadow_color"]
    )
    def test_filter_syntax_in_colors_rejected(self, field):
        with pytest.raises(ValidationError):
            TextOverlay(text="hi", **{field: "white,drawtext=textfile=/etc/passwd:fontsize=40"})

    def test_unvalidated_color_cannot_add_filters(self, temp_output_dir):
        injected = "white,drawtext=textfile=/etc/passwd:fontsize=40"
        overlay = TextOverlay.model_construct(**{**TextOverlay().model_dump(), "text": "hi", "font_color": injected})
        graph = FilterGraph(video_map="0:v", audio_map="1:a")
        graph.video_filters.append(build_text_filter(overlay, "/f.ttf", temp_output_dir / "t.txt"))

        filter_complex, _ = render_filter_complex(graph)

        assert "fontcolor='white,drawtext=textfile=/etc/passwd\\:fontsize=40'" in filter_complex
        assert filter_complex.count("drawtext=fontfile") == 1


class TestWatermark:
    def test_scaled_to_video_width(self):
        overlay = build_watermark(
            WatermarkEffect(url="https://cdn.test/logo.png", scale=0.15), 1080, input_index=2
        )
        assert overlay.width == 162
        assert (overlay.x, overlay.y) == ("W-w-20", "H-h-20")
        assert overlay.opacity == 0.7

    def test_positions(self):
        center = build_watermark(WatermarkEffect(url="u", position="center"), 1920, 2)
        top_left = build_watermark(WatermarkEffect(url="u", position="top_left"), 1920, 2)
        assert (center.x, center.y) == ("(W-w)/2", "(H-h)/2")
        assert (top_left.x, top_left.y) == ("20", "20")
