from __future__ import annotations

import math

from clipsmith.models import EffectProfile, LayoutMode, LogoPlacement

DEFAULT_WIDTH = 1080
DEFAULT_HEIGHT = 1920
DEFAULT_SAMPLE_RATE = 48000
VIDEO_OUTPUT_LABEL = "[vout]"
AUDIO_OUTPUT_LABEL = "[aout]"

_LOGO_POSITIONS = {
    "top_left": "{m}:{m}",
    "top_right": "W-w-{m}:{m}",
    "bottom_left": "{m}:H-h-{m}",
    "bottom_right": "W-w-{m}:H-h-{m}",
}


def build_transform_chain(profile: EffectProfile) -> str:
    """Geometry, color, noise and sharpen filters for one window, as a comma-joined chain."""

    zoom = profile.zoom
    radians = f"{profile.rotation_degrees * math.pi / 180:.6f}"
    shift_h = int(round(profile.chroma_shift_h))
    shift_v = int(round(profile.chroma_shift_v))

    filters = [
        f"scale=iw*{zoom}:ih*{zoom}",
        f"rotate={radians}:c=black@0:ow=rotw({radians}):oh=roth({radians})",
        f"crop=iw/{zoom}:ih/{zoom}:(iw-iw/{zoom})/2+{profile.pan_x}:(ih-ih/{zoom})/2+{profile.pan_y}",
        (
            f"eq=saturation={profile.saturation}:contrast={profile.contrast}"
            f":gamma={profile.gamma}:brightness={profile.brightness}"
        ),
        f"hue=h={profile.hue_degrees}",
        (
            f"colorbalance=rs={profile.balance_red - 1:.3f}"
            f":gs={profile.balance_green - 1:.3f}:bs={profile.balance_blue - 1:.3f}"
        ),
        (
            f"rgbashift=rh={shift_h}:rv={shift_v}:gh={-shift_h}:gv={-shift_v}"
            f":bh={int(round(shift_h / 2))}:bv={int(round(shift_v / 2))}"
        ),
        f"noise=alls={profile.grain}:allf=t+u",
        f"unsharp=5:5:{profile.sharpen}:5:5:0",
    ]
    if profile.mirror:
        filters.append("hflip")
    if profile.speed != 1.0:
        filters.append(f"setpts={1 / profile.speed:.4f}*PTS")
    return ",".join(filters)


def build_video_graph(
    profile: EffectProfile,
    *,
    layout: LayoutMode = "blur",
    has_watermark: bool = False,
    has_logo: bool = False,
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
) -> str:
    """Full ``-filter_complex`` video graph ending in ``[vout]``.

    Input order: ``0`` source, then the watermark (if any), then the logo (if any).
    """

    transform = build_transform_chain(profile)
    watermark_input = "[1:v]" if has_watermark else ""
    logo_input = f"[{2 if has_watermark else 1}:v]" if has_logo else ""

    if layout == "blur":
        parts = [
            "[0:v]split=2[main][bg]",
            f"[main]{transform},scale={width}:-2[fg]",
            (
                f"[bg]scale={width}:{height}:force_original_aspect_ratio=increase,"
                f"boxblur=20:1,crop={width}:{height}[bl]"
            ),
        ]
        current = "[fg]"
        if has_watermark:
            parts.append(f"{watermark_input}scale={width}:-2[wm]")
            parts.append(f"{current}[wm]overlay=0:(H-h)/2[fgwm]")
            current = "[fgwm]"
        if has_logo and profile.logo is not None:
            parts.append(f"{logo_input}{_logo_chain(profile.logo, width)}[logo]")
            parts.append(f"{current}[logo]overlay={logo_position(profile.logo)}[fglogo]")
            current = "[fglogo]"
        parts.append(f"[bl]{current}overlay=(W-w)/2:(H-h)/2{VIDEO_OUTPUT_LABEL}")
        return ";".join(parts)

    parts = [
        (
            f"[0:v]{transform},crop='min(iw,ih*9/16)':'min(ih,iw*16/9)':(iw-ow)/2:(ih-oh)/2,"
            f"scale={width}:{height}[vid]"
        )
    ]
    current = "[vid]"
    if has_watermark:
        parts.append(f"{watermark_input}scale={width}:{height}[wm]")
        parts.append(f"{current}[wm]overlay=0:0[vidwm]")
        current = "[vidwm]"
    if has_logo and profile.logo is not None:
        parts.append(f"{logo_input}{_logo_chain(profile.logo, width)}[logo]")
        parts.append(f"{current}[logo]overlay={logo_position(profile.logo)}[vidlogo]")
        current = "[vidlogo]"
    parts.append(f"{current}null{VIDEO_OUTPUT_LABEL}")
    return ";".join(parts)


def build_audio_chain(profile: EffectProfile, *, sample_rate: int = DEFAULT_SAMPLE_RATE) -> str:
    """Bass/treble EQ plus a duration-preserving pitch shift."""

    filters = [
        f"bass=g={profile.bass_gain_db}:f=100",
        f"treble=g={profile.treble_gain_db}:f=3000",
        f"asetrate={sample_rate}*{profile.pitch_shift}",
        f"aresample={sample_rate}",
        f"atempo={1 / profile.pitch_shift:.6f}",
    ]
    if profile.speed != 1.0:
        filters.append(f"atempo={profile.speed:.4f}")
    return ",".join(filters)


def build_filter_complex(
    profile: EffectProfile,
    *,
    layout: LayoutMode = "blur",
    has_watermark: bool = False,
    has_logo: bool = False,
    include_audio: bool = True,
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> str:
    graph = build_video_graph(
        profile,
        layout=layout,
        has_watermark=has_watermark,
        has_logo=has_logo,
        width=width,
        height=height,
    )
    if include_audio:
        graph += f";[0:a]{build_audio_chain(profile, sample_rate=sample_rate)}{AUDIO_OUTPUT_LABEL}"
    return graph


def logo_position(logo: LogoPlacement) -> str:
    template = _LOGO_POSITIONS.get(logo.position, _LOGO_POSITIONS["bottom_right"])
    return template.format(m=logo.margin)


def _logo_chain(logo: LogoPlacement, width: int) -> str:
    chain = f"scale={width}*{logo.scale}:-1"
    if logo.opacity < 1:
        chain += f",format=rgba,colorchannelmixer=aa={logo.opacity}"
    return chain
