"""Audio stage builders for flat-mode effects."""

from ffrender.render.graph import Filter
from ffrender.render.video_filters import effective_duration
from ffrender.schemas.effects import AudioEffect

# atempo accepts factors in [0.5, 2.0] per stage
ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0

LOUDNORM = {"I": -14, "TP": -1, "LRA": 11}


def speed_audio(speed: float) -> list[Filter]:
    """Time-stretch stages for a playback speed.

    Speeds above 2.0 chain two stages (2.0 then s/2). Speeds below 0.5 are
    clamped to 0.5 for audio only, so audio and video drift apart there.
    """
    if not speed or speed == 1.0:
        return []
    if speed > ATEMPO_MAX:
        return [Filter("atempo", [ATEMPO_MAX]), Filter("atempo", [speed / ATEMPO_MAX])]
    if speed > ATEMPO_MIN:
        return [Filter("atempo", [speed])]
    return [Filter("atempo", [max(ATEMPO_MIN, speed)])]


def audio_effect_filters(
    audio: AudioEffect, duration: float, speed: float, synced_fade: bool
) -> list[Filter]:
    """Volume, audio-only fades and loudness normalization.

    Audio-only fades are dropped when the synced video/audio fade is active,
    otherwise the track would be faded twice.
    """
    filters: list[Filter] = []

    if audio.volume != 1.0:
        filters.append(Filter("volume", [audio.volume]))

    if not synced_fade:
        if audio.fade_in:
            filters.append(Filter("afade", options={"t": "in", "st": 0, "d": audio.fade_in}))
        if audio.fade_out:
            eff = effective_duration(duration, speed)
            start = f"{max(0.0, eff - audio.fade_out):.2f}"
            filters.append(Filter("afade", options={"t": "out", "st": start, "d": audio.fade_out}))

    if audio.normalize:
        filters.append(Filter("loudnorm", options=dict(LOUDNORM)))

    return filters
