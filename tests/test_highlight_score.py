from __future__ import annotations

import numpy as np
import pytest

from clipsmith.features.signals import extract_signals
from clipsmith.models import EvidenceSignals, ScoredWindow
from clipsmith.scoring.highlight_score import (
    combine_signals,
    fallback_highlight,
    score_candidate_windows,
    select_highlights,
    select_non_overlapping,
)


def _signals(duration: float, timestamp: np.ndarray, cut: np.ndarray | None = None) -> EvidenceSignals:
    return EvidenceSignals(
        duration_seconds=duration,
        timestamp_signal=timestamp,
        cut_signal=cut if cut is not None else np.zeros_like(timestamp),
    )


def test_combine_signals_weights_timestamps_three_to_one() -> None:
    signals = _signals(2, np.array([1.0, 0.0, 2.0]), np.array([1.0, 4.0, 0.0]))

    assert combine_signals(signals).tolist() == [4.0, 4.0, 6.0]


def test_score_candidate_windows_uses_mean_over_window() -> None:
    candidates = score_candidate_windows(np.array([0.0, 3.0, 3.0, 0.0, 0.0]), duration_seconds=4, span_seconds=2)

    assert [(c.start, c.end) for c in candidates] == [(0, 2), (1, 3), (2, 4)]
    assert [c.score for c in candidates] == [1.5, 3.0, 1.5]


def test_score_candidate_windows_is_empty_when_source_shorter_than_span() -> None:
    assert score_candidate_windows(np.ones(21), duration_seconds=20, span_seconds=30) == []


def test_score_candidate_windows_rejects_non_positive_span() -> None:
    with pytest.raises(ValueError, match="span must be positive"):
        score_candidate_windows(np.ones(5), duration_seconds=4, span_seconds=0)


def test_select_non_overlapping_breaks_ties_by_earliest_start() -> None:
    candidates = [
        ScoredWindow(start=40, end=50, score=1.0),
        ScoredWindow(start=0, end=10, score=1.0),
        ScoredWindow(start=20, end=30, score=1.0),
    ]

    chosen = select_non_overlapping(candidates, max_count=2)

    assert [window.start for window in chosen] == [0, 20]


def test_select_non_overlapping_treats_touching_windows_as_disjoint() -> None:
    candidates = [
        ScoredWindow(start=10, end=20, score=2.0),
        ScoredWindow(start=15, end=25, score=1.5),
        ScoredWindow(start=20, end=30, score=1.0),
    ]

    chosen = select_non_overlapping(candidates, max_count=3)

    assert [(window.start, window.end) for window in chosen] == [(10, 20), (20, 30)]


def test_single_timestamp_peak_selects_window_covering_it() -> None:
    signals = extract_signals(100, "watch 0:50", [])

    highlights = select_highlights(signals, span_seconds=30, max_count=3)

    assert 1 <= len(highlights) <= 3
    first = highlights[0]
    assert first.window.start <= 50 <= first.window.end
    assert first.reason == "1 timestamps"
    for index, highlight in enumerate(highlights):
        assert highlight.window.duration == 30
        for other in highlights[index + 1 :]:
            assert not highlight.window.overlaps(other.window)


def test_highlight_reason_counts_scene_cuts_and_falls_back_to_generic() -> None:
    signals = extract_signals(200, "", [100.0, 102.0])

    highlights = select_highlights(signals, span_seconds=20, max_count=2)

    assert highlights[0].reason == "2 scene cuts"
    assert highlights[1].reason == "relative activity"


def test_select_highlights_returns_nothing_for_short_source() -> None:
    signals = extract_signals(20, "0:05", [])

    assert select_highlights(signals, span_seconds=30, max_count=3) == []


def test_fallback_highlight_spans_start_of_source() -> None:
    highlight = fallback_highlight(20.0, 30)

    assert (highlight.window.start, highlight.window.end) == (0.0, 20.0)
    assert highlight.reason == "fallback"
