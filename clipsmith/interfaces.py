from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from clipsmith.models import CaptionEntry, ClipMetadata, RenderRequest


class SourceAcquirer(Protocol):
    @property
    def media_path(self) -> Path:
        """Local path of the acquired source media."""

    @property
    def title(self) -> str:
        """Human-readable title used to name the run directory."""

    def fetch_duration(self) -> float:
        """Total duration in seconds; raises ``DurationUnavailable`` when unknown."""

    def fetch_description_and_comments(self) -> str:
        """Free text mined for embedded timecodes."""

    def fetch_existing_captions(self, language: str) -> list[CaptionEntry] | None:
        """Source-timeline captions for ``language``, or ``None``."""


class MediaTranscoder(Protocol):
    def render(self, request: RenderRequest) -> Path:
        """Render one window; raises ``RenderFailure``."""

    def concatenate(self, inputs: Sequence[Path], metadata: ClipMetadata, output_path: Path) -> Path:
        """Stream-copy ``inputs`` in order into ``output_path``; raises ``RenderFailure``."""

    def extract_audio(self, source_path: Path, output_path: Path, sample_rate: int = 16000) -> Path:
        """Mono PCM audio track for transcription."""


class Transcriber(Protocol):
    def transcribe(self, audio_path: Path, language: str) -> list[CaptionEntry] | None:
        """Timestamped text spans, or ``None`` when nothing was recognized."""
