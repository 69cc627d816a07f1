from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal

import numpy as np

from clipsmith.errors import PlanningError

PlanMode = Literal["ranges", "whole", "highlights", "template"]
ClipStatus = Literal["ok", "empty", "failed"]
LayoutMode = Literal["blur", "crop"]


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """A contiguous interval of the source timeline, in seconds."""

    start: float
    end: float

    def __post_init__(self) -> None:
        if self.start < 0 or self.end <= self.start:
            raise PlanningError(f"Invalid time window [{self.start}, {self.end}): need 0 <= start < end.")

    @property
    def duration(self) -> float:
        return self.end - self.start

    def overlaps(self, other: TimeWindow) -> bool:
        return not (self.end <= other.start or self.start >= other.end)

    def contains(self, start: float, end: float) -> bool:
        return self.start <= start and end <= self.end


@dataclass(slots=True)
class EvidenceSignals:
    """Per-second evidence arrays plus the raw evidence they were built from."""

    duration_seconds: float
    timestamp_signal: np.ndarray
    cut_signal: np.ndarray
    timecodes: list[int] = field(default_factory=list)
    scene_cuts: list[float] = field(default_factory=list)

    @property
    def length(self) -> int:
        return int(self.timestamp_signal.shape[0])


@dataclass(slots=True)
class ScoredWindow:
    start: int
    end: int
    score: float


@dataclass(frozen=True, slots=True)
class Highlight:
    """A selected window with its mean score and a readable justification."""

    window: TimeWindow
    score: float
    reason: str


@dataclass(frozen=True, slots=True)
class LogoPlacement:
    position: str
    scale: float
    opacity: float
    margin: int


@dataclass(frozen=True, slots=True)
class EffectProfile:
    """Independently sampled transform parameters for one rendered window."""

    saturation: float
    contrast: float
    gamma: float
    brightness: float
    hue_degrees: float
    balance_red: float
    balance_green: float
    balance_blue: float
    rotation_degrees: float
    zoom: float
    pan_x: float
    pan_y: float
    grain: float
    sharpen: float
    chroma_shift_h: float
    chroma_shift_v: float
    pitch_shift: float
    bass_gain_db: float
    treble_gain_db: float
    crf: int
    preset: str
    audio_bitrate_kbps: int
    speed: float = 1.0
    mirror: bool = True
    logo: LogoPlacement | None = None


@dataclass(frozen=True, slots=True)
class ClipGroup:
    """Indices into ``SegmentPlan.windows`` that make up one output clip."""

    clip_index: int
    window_indices: tuple[int, ...]


@dataclass(slots=True)
class SegmentPlan:
    mode: PlanMode
    windows: list[TimeWindow]
    clips: list[ClipGroup]
    highlights: list[Highlight] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def clip_windows(self, clip: ClipGroup) -> list[TimeWindow]:
        return [self.windows[index] for index in clip.window_indices]


@dataclass(frozen=True, slots=True)
class ClipMetadata:
    title: str
    creation_time: datetime
    encoder: str
    comment: str


@dataclass(frozen=True, slots=True)
class OverlayAssets:
    """Overlay files resolved once per run; ``None`` means the overlay is off."""

    logo_path: Path | None = None
    watermark_path: Path | None = None


@dataclass(frozen=True, slots=True)
class RenderRequest:
    source_path: Path
    window: TimeWindow
    profile: EffectProfile
    overlays: OverlayAssets
    metadata: ClipMetadata
    output_path: Path
    layout: LayoutMode = "blur"
    include_audio: bool = True


@dataclass(slots=True)
class RenderResult:
    window_index: int
    window: TimeWindow
    output_path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.output_path is not None and self.error is None


@dataclass(frozen=True, slots=True)
class CaptionEntry:
    """Caption aligned to the source timeline."""

    start: float
    end: float
    text: str


@dataclass(frozen=True, slots=True)
class RetimedCaptionEntry:
    """Caption aligned to an assembled clip's local timeline."""

    start: float
    end: float
    text: str


@dataclass(slots=True)
class ClipResult:
    clip_index: int
    windows: list[TimeWindow]
    status: ClipStatus
    output_path: Path | None = None
    rendered_window_indices: list[int] = field(default_factory=list)
    failed_window_indices: list[int] = field(default_factory=list)
    caption_path: Path | None = None
    caption_count: int = 0
    error: str | None = None
