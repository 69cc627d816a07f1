from __future__ import annotations

import random
from dataclasses import asdict
from typing import Any

from clipsmith.config import EffectRanges, LogoPosition
from clipsmith.models import EffectProfile, LogoPlacement

# Playback speed is never sampled.
PINNED_SPEED = 1.0
DECIMALS = 4

_FLOAT_FIELDS = (
    "saturation",
    "contrast",
    "gamma",
    "brightness",
    "hue_degrees",
    "balance_red",
    "balance_green",
    "balance_blue",
    "rotation_degrees",
    "zoom",
    "pan_x",
    "pan_y",
    "grain",
    "sharpen",
    "chroma_shift_h",
    "chroma_shift_v",
    "pitch_shift",
    "bass_gain_db",
    "treble_gain_db",
)


def generate_effect_profile(
    ranges: EffectRanges,
    *,
    with_logo: bool = False,
    logo_position: LogoPosition = "bottom_right",
    rng: random.Random | None = None,
) -> EffectProfile:
    """Sample a fresh effect profile; every field is drawn independently and uniformly.

    No state survives between calls. ``rng`` exists for tests; production calls
    use an unseeded system source.
    """

    source = rng or random.SystemRandom()

    values: dict[str, Any] = {
        name: _uniform(source, getattr(ranges, name)) for name in _FLOAT_FIELDS
    }
    values["crf"] = source.randint(*ranges.crf)
    values["preset"] = source.choice(ranges.presets)
    values["audio_bitrate_kbps"] = source.randint(*ranges.audio_bitrate_kbps)

    logo = None
    if with_logo:
        logo = LogoPlacement(
            position=logo_position,
            scale=_uniform(source, ranges.logo_scale),
            opacity=_uniform(source, ranges.logo_opacity),
            margin=source.randint(*ranges.logo_margin),
        )

    return EffectProfile(
        **values,
        speed=PINNED_SPEED,
        mirror=ranges.mirror,
        logo=logo,
    )


def describe_profile(profile: EffectProfile) -> str:
    return (
        f"sat={profile.saturation:.2f} hue={profile.hue_degrees:.1f}deg "
        f"zoom={profile.zoom:.3f} pitch={profile.pitch_shift:.3f} "
        f"crf={profile.crf} preset={profile.preset}"
    )


def profile_to_dict(profile: EffectProfile) -> dict[str, Any]:
    return asdict(profile)


def _uniform(source: random.Random, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return min(max(round(source.uniform(low, high), DECIMALS), low), high)
