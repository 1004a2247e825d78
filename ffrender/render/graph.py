"""Structured filter graph and its serialization to ffmpeg syntax.

The compilers build :class:`FilterGraph` objects out of typed :class:`Filter`
stages. Nothing outside this module formats filtergraph text, so quoting and
escaping rules live in exactly one place (:func:`render_filter_complex`).
"""

from dataclasses import dataclass, field
from typing import Union


class Expr(str):
    """An ffmpeg expression. Rendered single-quoted so commas survive."""


class FilterPath(str):
    """A filesystem path used as a filter option (subtitles, fontsdir, ...)."""


FilterValue = Union[str, int, float, Expr, FilterPath]


def format_number(value: float | int) -> str:
    """Format a number without float noise: 2.0 -> "2", 0.1+0.2 -> "0.3"."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


# Characters that end an option value at the option level or the graph level
_SPECIAL_CHARS = frozenset("\\':,;[]")


def escape_filter_option(text: str) -> str:
    """Escape option-level separators (backslash, quote, colon)."""
    return str(text).replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")


def escape_filter_path(path: str) -> str:
    """Escape a path for use inside a quoted filter option."""
    return str(path).replace("\\", "/").replace(":", "\\:").replace("'", "\\'")


def quote_filter_value(escaped: str) -> str:
    """Single-quote an option-escaped value for the graph parser.

    A quote cannot appear inside a quoted section, so each one closes the
    section, is emitted escaped, and reopens it.
    """
    return "'" + escaped.replace("'", "'\\''") + "'"


def _render_value(value: FilterValue) -> str:
    if isinstance(value, FilterPath):
        return quote_filter_value(escape_filter_path(value))
    if isinstance(value, Expr):
        return f"'{value}'"
    if isinstance(value, (int, float)):
        return format_number(value)
    text = str(value)
    if _SPECIAL_CHARS.intersection(text):
        return quote_filter_value(escape_filter_option(text))
    return text


@dataclass
class Filter:
    """One filter stage: ``name=arg1:arg2:key=value``."""

    name: str
    args: list[FilterValue] = field(default_factory=list)
    options: dict[str, FilterValue] = field(default_factory=dict)

    def render(self) -> str:
        parts = [_render_value(a) for a in self.args]
        parts.extend(f"{key}={_render_value(value)}" for key, value in self.options.items())
        if not parts:
            return self.name
        return f"{self.name}=" + ":".join(parts)

    def __str__(self) -> str:
        return self.render()


@dataclass
class FilterChain:
    """Linear run of filters between labelled pads."""

    inputs: list[str]
    filters: list[Filter]
    outputs: list[str]

    def render(self) -> str:
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        body = ",".join(f.render() for f in self.filters) if self.filters else "null"
        return f"{ins}{body}{outs}"


@dataclass
class GraphInput:
    """An input file for the encoder."""

    path: str
    kind: str  # video, audio or image


@dataclass
class WatermarkOverlay:
    """Auxiliary image overlaid on the processed video."""

    input_index: int
    width: int
    opacity: float
    x: str
    y: str


@dataclass
class FilterGraph:
    """Complete processing description for one job.

    ``video_filters`` and ``audio_filters`` are the flat-mode stage lists
    applied to the primary streams; ``chains`` holds the merge instructions
    of a timeline composition. ``video_map``/``audio_map`` name the pads (or
    raw stream specifiers) that end up in the output, ``None`` for absent.
    """

    inputs: list[GraphInput] = field(default_factory=list)
    video_filters: list[Filter] = field(default_factory=list)
    audio_filters: list[Filter] = field(default_factory=list)
    chains: list[FilterChain] = field(default_factory=list)
    watermark: WatermarkOverlay | None = None
    video_map: str | None = None
    audio_map: str | None = None

    @property
    def needs_watermark_input(self) -> bool:
        return self.watermark is not None

    def add_input(self, path: str, kind: str) -> int:
        self.inputs.append(GraphInput(path=path, kind=kind))
        return len(self.inputs) - 1


def _flat_chains(graph: FilterGraph) -> tuple[list[FilterChain], str | None, str | None]:
    """Derive labelled chains for a flat graph (one video + one audio input)."""
    chains: list[FilterChain] = []
    video_map = graph.video_map
    audio_map = graph.audio_map

    if video_map is not None and graph.video_filters:
        chains.append(FilterChain([video_map], list(graph.video_filters), ["vOut"]))
        video_map = "vOut"

    if video_map is not None and graph.watermark is not None:
        wm = graph.watermark
        chains.append(
            FilterChain(
                [f"{wm.input_index}:v"],
                [
                    Filter("scale", [wm.width, -1]),
                    Filter("format", ["rgba"]),
                    Filter("colorchannelmixer", options={"aa": wm.opacity}),
                ],
                ["wm"],
            )
        )
        chains.append(FilterChain([video_map, "wm"], [Filter("overlay", [wm.x, wm.y])], ["vWm"]))
        video_map = "vWm"

    if audio_map is not None and graph.audio_filters:
        chains.append(FilterChain([audio_map], list(graph.audio_filters), ["aOut"]))
        audio_map = "aOut"

    return chains, video_map, audio_map


def render_filter_complex(graph: FilterGraph) -> tuple[str, list[str]]:
    """Serialize a graph into a ``-filter_complex`` string and ``-map`` targets.

    Returns:
        Tuple of (filter_complex, maps). ``filter_complex`` is empty when the
        graph passes its streams through untouched.
    """
    if graph.chains:
        chains = list(graph.chains)
        video_map, audio_map = graph.video_map, graph.audio_map
    else:
        chains, video_map, audio_map = _flat_chains(graph)

    labelled = {label for chain in chains for label in chain.outputs}
    maps = []
    for target in (video_map, audio_map):
        if target is None:
            continue
        maps.append(f"[{target}]" if target in labelled else target)

    return ";".join(chain.render() for chain in chains), maps
