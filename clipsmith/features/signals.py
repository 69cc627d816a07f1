from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable

import numpy as np

from clipsmith.errors import DurationUnavailable
from clipsmith.models import EvidenceSignals

logger = logging.getLogger(__name__)

TIMECODE_PATTERN = re.compile(r"\b(?:(\d{1,2}):)?(\d{1,2}):(\d{2})\b")
DEFAULT_TIMESTAMP_RADIUS_SECONDS = 5
DEFAULT_CUT_RADIUS_SECONDS = 2


def parse_timecodes(text: str, duration_seconds: float | None = None) -> list[int]:
    """Return every ``MM:SS`` / ``HH:MM:SS`` mention in text as whole seconds.

    Repeated mentions are kept; timecodes past ``duration_seconds`` are dropped.
    """

    timecodes: list[int] = []
    for match in TIMECODE_PATTERN.finditer(text or ""):
        hours_raw, minutes_raw, seconds_raw = match.groups()
        total = int(hours_raw or 0) * 3600 + int(minutes_raw) * 60 + int(seconds_raw)
        if duration_seconds is not None and total > duration_seconds:
            continue
        timecodes.append(total)
    return timecodes


def signal_length(duration_seconds: float | None) -> int:
    if duration_seconds is None or not math.isfinite(duration_seconds) or duration_seconds <= 0:
        raise DurationUnavailable(f"Source duration is unknown or invalid: {duration_seconds!r}")
    return math.ceil(duration_seconds) + 1


def build_timestamp_signal(
    timecodes: Iterable[int],
    length: int,
    radius_seconds: int = DEFAULT_TIMESTAMP_RADIUS_SECONDS,
) -> np.ndarray:
    signal = np.zeros(length, dtype=np.float64)
    for timecode in timecodes:
        _add_radius(signal, int(timecode), radius_seconds)
    return signal


def build_cut_density_signal(
    scene_cuts: Iterable[float],
    length: int,
    radius_seconds: int = DEFAULT_CUT_RADIUS_SECONDS,
) -> np.ndarray:
    signal = np.zeros(length, dtype=np.float64)
    for cut in scene_cuts:
        _add_radius(signal, _round_half_up(cut), radius_seconds)
    return signal


def extract_signals(
    duration_seconds: float | None,
    corpus: str | None,
    scene_cuts: Iterable[float] | None,
    *,
    timestamp_radius_seconds: int = DEFAULT_TIMESTAMP_RADIUS_SECONDS,
    cut_radius_seconds: int = DEFAULT_CUT_RADIUS_SECONDS,
) -> EvidenceSignals:
    """Build the timestamp-proximity and cut-density signals for one source."""

    length = signal_length(duration_seconds)
    duration = float(duration_seconds or 0.0)

    timecodes = parse_timecodes(corpus or "", duration)
    cuts = sorted(float(cut) for cut in (scene_cuts or []) if 0 <= float(cut) <= duration)

    if not timecodes:
        logger.info("No timecodes found in description/comments; timestamp signal is empty.")
    if not cuts:
        logger.info("No scene cuts available; cut density signal is empty.")

    return EvidenceSignals(
        duration_seconds=duration,
        timestamp_signal=build_timestamp_signal(timecodes, length, timestamp_radius_seconds),
        cut_signal=build_cut_density_signal(cuts, length, cut_radius_seconds),
        timecodes=timecodes,
        scene_cuts=cuts,
    )


def _add_radius(signal: np.ndarray, center: int, radius_seconds: int) -> None:
    start = max(0, center - radius_seconds)
    end = min(signal.shape[0] - 1, center + radius_seconds)
    if start > end:
        return
    signal[start : end + 1] += 1.0


def _round_half_up(value: float) -> int:
    return int(math.floor(float(value) + 0.5))
