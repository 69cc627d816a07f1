from __future__ import annotations

import math

import numpy as np

from clipsmith.models import EvidenceSignals, Highlight, ScoredWindow, TimeWindow

DEFAULT_TIMESTAMP_WEIGHT = 3.0
DEFAULT_CUT_WEIGHT = 1.0
FALLBACK_REASON = "fallback"
GENERIC_REASON = "relative activity"


def combine_signals(
    signals: EvidenceSignals,
    *,
    timestamp_weight: float = DEFAULT_TIMESTAMP_WEIGHT,
    cut_weight: float = DEFAULT_CUT_WEIGHT,
) -> np.ndarray:
    """Per-second relevance: weighted sum of the timestamp and cut-density signals."""

    return timestamp_weight * signals.timestamp_signal + cut_weight * signals.cut_signal


def score_candidate_windows(score: np.ndarray, duration_seconds: float, span_seconds: int) -> list[ScoredWindow]:
    """Mean score of every integer-start window ``[s, s+span)`` that fits in the duration."""

    span = int(span_seconds)
    if span <= 0:
        raise ValueError(f"Highlight span must be positive, got {span_seconds!r}.")

    max_start = math.floor(duration_seconds - span)
    if max_start < 0 or score.shape[0] == 0:
        return []

    prefix = np.concatenate(([0.0], np.cumsum(score, dtype=np.float64)))
    last_index = score.shape[0] - 1

    candidates: list[ScoredWindow] = []
    for start in range(0, max_start + 1):
        end_index = min(last_index, start + span - 1)
        total = prefix[end_index + 1] - prefix[start]
        candidates.append(
            ScoredWindow(start=start, end=start + span, score=float(total / (end_index - start + 1)))
        )
    return candidates


def select_non_overlapping(candidates: list[ScoredWindow], max_count: int) -> list[ScoredWindow]:
    """Greedy top-N by descending score; ties go to the earliest start."""

    ranked = sorted(candidates, key=lambda window: (-window.score, window.start))
    chosen: list[ScoredWindow] = []
    for window in ranked:
        if len(chosen) >= max_count:
            break
        if any(not (window.end <= kept.start or window.start >= kept.end) for kept in chosen):
            continue
        chosen.append(window)
    return chosen


def select_highlights(
    signals: EvidenceSignals,
    *,
    span_seconds: int,
    max_count: int,
    timestamp_weight: float = DEFAULT_TIMESTAMP_WEIGHT,
    cut_weight: float = DEFAULT_CUT_WEIGHT,
) -> list[Highlight]:
    """Pick up to ``max_count`` non-overlapping highlight windows.

    May return an empty list (e.g. when the source is shorter than the span);
    callers decide on a fallback window.
    """

    if max_count <= 0:
        return []

    score = combine_signals(signals, timestamp_weight=timestamp_weight, cut_weight=cut_weight)
    candidates = score_candidate_windows(score, signals.duration_seconds, span_seconds)
    chosen = select_non_overlapping(candidates, max_count)

    highlights: list[Highlight] = []
    for scored in chosen:
        window = TimeWindow(start=float(scored.start), end=min(signals.duration_seconds, float(scored.end)))
        highlights.append(
            Highlight(
                window=window,
                score=scored.score,
                reason=explain_window(signals, window),
            )
        )
    return highlights


def fallback_highlight(duration_seconds: float, span_seconds: int) -> Highlight:
    return Highlight(
        window=TimeWindow(start=0.0, end=min(duration_seconds, float(span_seconds))),
        score=0.0,
        reason=FALLBACK_REASON,
    )


def explain_window(signals: EvidenceSignals, window: TimeWindow) -> str:
    parts: list[str] = []
    timestamp_count = sum(1 for timecode in signals.timecodes if window.start <= timecode <= window.end)
    if timestamp_count:
        parts.append(f"{timestamp_count} timestamps")
    cut_count = sum(1 for cut in signals.scene_cuts if window.start <= cut <= window.end)
    if cut_count:
        parts.append(f"{cut_count} scene cuts")
    return ", ".join(parts) if parts else GENERIC_REASON
