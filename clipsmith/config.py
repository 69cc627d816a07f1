from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from clipsmith.models import LayoutMode

DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENV_PREFIX = "CLIPSMITH_"

LogoPosition = Literal["top_left", "top_right", "bottom_left", "bottom_right"]


class PipelineSettings(BaseModel):
    output_dir: Path = Path("data/outputs")
    cache_dir: Path = Path("data/cache")
    segment_seconds: int = 61
    auto_split: bool = True
    max_workers: int = 2
    layout: LayoutMode = "blur"
    keep_work_dir: bool = False


class HighlightSettings(BaseModel):
    max_highlights: int = 5
    span_seconds: int = 61
    include_comments: bool = True
    timestamp_weight: float = 3.0
    cut_weight: float = 1.0
    timestamp_radius_seconds: int = 5
    cut_radius_seconds: int = 2
    analysis_fps: float = 2.0
    processing_width: int = 320
    scene_change_multiplier: float = 2.5
    min_scene_change_score: float = 0.12


class TemplateSettings(BaseModel):
    segments_per_clip: int = 3
    segment_seconds: float = 20.0
    gap_seconds: float = 10.0
    start_offset_seconds: float = 0.0


class EffectRanges(BaseModel):
    """Documented sampling bounds for per-window effect profiles.

    Frozen so a single instance can be shared across workers and runs.
    """

    model_config = ConfigDict(frozen=True)

    saturation: tuple[float, float] = (1.01, 1.06)
    contrast: tuple[float, float] = (1.00, 1.04)
    gamma: tuple[float, float] = (0.98, 1.04)
    brightness: tuple[float, float] = (-0.02, 0.03)
    hue_degrees: tuple[float, float] = (-5.0, 5.0)
    balance_red: tuple[float, float] = (0.97, 1.03)
    balance_green: tuple[float, float] = (0.98, 1.02)
    balance_blue: tuple[float, float] = (0.96, 1.04)
    rotation_degrees: tuple[float, float] = (0.1, 0.5)
    zoom: tuple[float, float] = (1.01, 1.04)
    pan_x: tuple[float, float] = (2.0, 12.0)
    pan_y: tuple[float, float] = (1.0, 8.0)
    grain: tuple[float, float] = (2.0, 6.0)
    sharpen: tuple[float, float] = (0.2, 0.6)
    chroma_shift_h: tuple[float, float] = (-2.0, 2.0)
    chroma_shift_v: tuple[float, float] = (-1.0, 1.0)
    pitch_shift: tuple[float, float] = (0.98, 1.03)
    bass_gain_db: tuple[float, float] = (0.5, 2.5)
    treble_gain_db: tuple[float, float] = (-1.5, 0.5)
    crf: tuple[int, int] = (21, 24)
    presets: tuple[str, ...] = ("fast", "medium")
    audio_bitrate_kbps: tuple[int, int] = (120, 135)
    logo_scale: tuple[float, float] = (0.10, 0.14)
    logo_opacity: tuple[float, float] = (0.85, 1.0)
    logo_margin: tuple[int, int] = (8, 14)
    mirror: bool = True

    @model_validator(mode="after")
    def _check_bounds(self) -> EffectRanges:
        for name, value in self:
            if isinstance(value, tuple) and len(value) == 2 and not isinstance(value[0], str):
                low, high = value
                if low > high:
                    raise ValueError(f"Effect range '{name}' has min {low} greater than max {high}.")
        if not self.presets:
            raise ValueError("Effect range 'presets' must name at least one encoder preset.")
        return self


class OverlaySettings(BaseModel):
    logo_enabled: bool = True
    logo_path: Path = Path("assets/logo.jpg")
    logo_position: LogoPosition = "bottom_right"
    watermark_path: Path = Path("assets/watermark.png")


class TranscoderSettings(BaseModel):
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    timeout_seconds: int = 900
    output_width: int = 1080
    output_height: int = 1920
    audio_sample_rate: int = 48000


class CaptionSettings(BaseModel):
    enabled: bool = True
    language: str = "en"
    transcribe: bool = True
    model_size: str = "small"
    device: str = "auto"
    compute_type: str = "default"


class SourceSettings(BaseModel):
    ytdlp_format: str = "bv*[ext=mp4]+ba[ext=m4a]/bv*+ba/b"
    max_comments: int = 500


class LoggingSettings(BaseModel):
    level: str = "INFO"


class Settings(BaseModel):
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    highlights: HighlightSettings = Field(default_factory=HighlightSettings)
    template: TemplateSettings = Field(default_factory=TemplateSettings)
    effects: EffectRanges = Field(default_factory=EffectRanges)
    overlays: OverlaySettings = Field(default_factory=OverlaySettings)
    transcoder: TranscoderSettings = Field(default_factory=TranscoderSettings)
    captions: CaptionSettings = Field(default_factory=CaptionSettings)
    source: SourceSettings = Field(default_factory=SourceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load typed settings from YAML with environment-variable overrides."""

    resolved_path = Path(
        config_path
        or os.getenv(f"{ENV_PREFIX}CONFIG")
        or DEFAULT_CONFIG_PATH
    )
    if resolved_path == DEFAULT_CONFIG_PATH and not resolved_path.exists():
        raw_config: dict[str, Any] = {}
    else:
        raw_config = yaml.safe_load(resolved_path.read_text(encoding="utf-8")) or {}
    data = Settings.model_validate(raw_config).model_dump(mode="python")

    for key, raw_value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        suffix = key[len(ENV_PREFIX) :]
        if suffix == "CONFIG":
            continue

        path = [part.lower() for part in suffix.split("__")]
        _apply_override(data, path, raw_value)

    return Settings.model_validate(data)


def _apply_override(data: dict[str, Any], path: list[str], raw_value: str) -> None:
    current: Any = data
    for segment in path[:-1]:
        if not isinstance(current, dict) or segment not in current:
            return
        current = current[segment]

    if not isinstance(current, dict):
        return

    final_key = path[-1]
    if final_key not in current:
        return

    current[final_key] = _coerce_value(raw_value, current[final_key])


def _coerce_value(raw_value: str, existing_value: Any) -> Any:
    if isinstance(existing_value, bool):
        return raw_value.lower() in {"1", "true", "yes", "on"}
    if isinstance(existing_value, int) and not isinstance(existing_value, bool):
        return int(raw_value)
    if isinstance(existing_value, float):
        return float(raw_value)
    if isinstance(existing_value, list | tuple | dict):
        return json.loads(raw_value)
    if isinstance(existing_value, Path):
        return Path(raw_value)
    return raw_value
