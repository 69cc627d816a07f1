from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any

from clipsmith.config import CaptionSettings
from clipsmith.errors import CaptionUnavailable
from clipsmith.models import CaptionEntry

logger = logging.getLogger(__name__)


class WhisperTranscriber:
    """Speech-to-text via faster-whisper; the model is loaded on first use and reused."""

    def __init__(self, settings: CaptionSettings | None = None) -> None:
        self.settings = settings or CaptionSettings()
        self._model: Any = None

    def transcribe(self, audio_path: Path, language: str) -> list[CaptionEntry] | None:
        source_path = Path(audio_path).expanduser().resolve()
        if not source_path.exists():
            raise CaptionUnavailable(f"Audio file not found: {source_path}")

        model = self._load_model()
        segments_iter, info = model.transcribe(
            str(source_path),
            language=language,
            vad_filter=True,
            word_timestamps=False,
        )

        entries = [
            CaptionEntry(
                start=round(float(segment.start), 3),
                end=round(float(segment.end), 3),
                text=segment.text.strip(),
            )
            for segment in segments_iter
            if segment.text.strip() and segment.end > segment.start
        ]
        logger.info(
            "Transcribed %s: %d segments (language=%s, audio=%.1fs).",
            source_path.name,
            len(entries),
            getattr(info, "language", language),
            _safe_float(getattr(info, "duration", None)) or 0.0,
        )
        return entries or None

    def _load_model(self) -> Any:
        if self._model is None:
            from faster_whisper import WhisperModel

            logger.info(
                "Loading faster-whisper model '%s' (device=%s, compute_type=%s).",
                self.settings.model_size,
                self.settings.device,
                self.settings.compute_type,
            )
            self._model = WhisperModel(
                self.settings.model_size,
                device=self.settings.device,
                compute_type=self.settings.compute_type,
            )
        return self._model


def _safe_float(value: Any) -> float | None:
    if value is None:
        return None
    result = float(value)
    return result if math.isfinite(result) else None
