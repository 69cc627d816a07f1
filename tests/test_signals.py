from __future__ import annotations

import numpy as np
import pytest

from clipsmith.errors import DurationUnavailable
from clipsmith.features.signals import (
    build_cut_density_signal,
    build_timestamp_signal,
    extract_signals,
    parse_timecodes,
    signal_length,
)


def test_parse_timecodes_reads_minutes_and_hours() -> None:
    text = "Best part at 1:05, again at 01:02:03 and the intro 0:10."

    assert parse_timecodes(text) == [65, 3723, 10]


def test_parse_timecodes_keeps_repeats_and_drops_values_past_duration() -> None:
    text = "2:00 lol 2:00 and 9:59"

    assert parse_timecodes(text, duration_seconds=300) == [120, 120]


def test_parse_timecodes_ignores_malformed_seconds() -> None:
    assert parse_timecodes("ratio 3:1 and score 10:5") == []


def test_signal_length_is_ceil_plus_one() -> None:
    assert signal_length(100) == 101
    assert signal_length(100.2) == 102


@pytest.mark.parametrize("duration", [None, 0, -5, float("nan"), float("inf")])
def test_signal_length_rejects_unknown_duration(duration) -> None:
    with pytest.raises(DurationUnavailable):
        signal_length(duration)


def test_timestamp_signal_adds_radius_and_clips_to_bounds() -> None:
    signal = build_timestamp_signal([2], length=20, radius_seconds=5)

    assert signal[:8].tolist() == [1.0] * 8
    assert signal[8:].sum() == 0


def test_timestamp_signal_compounds_repeated_mentions() -> None:
    signal = build_timestamp_signal([10, 10, 12], length=30, radius_seconds=5)

    assert signal[10] == 3.0
    assert signal[5] == 2.0
    assert signal[17] == 1.0
    assert signal[4] == 0.0


def test_cut_density_rounds_half_up() -> None:
    signal = build_cut_density_signal([4.5], length=20, radius_seconds=2)

    assert np.flatnonzero(signal).tolist() == [3, 4, 5, 6, 7]


def test_extract_signals_with_empty_evidence_is_all_zero(caplog) -> None:
    caplog.set_level("INFO")

    signals = extract_signals(60, "", [])

    assert signals.length == 61
    assert not signals.timestamp_signal.any()
    assert not signals.cut_signal.any()
    assert "timestamp signal is empty" in caplog.text


def test_extract_signals_ignores_cuts_beyond_duration() -> None:
    signals = extract_signals(10, None, [3.0, 50.0])

    assert signals.scene_cuts == [3.0]
    assert signals.cut_signal.sum() == 5


def test_extract_signals_raises_without_duration() -> None:
    with pytest.raises(DurationUnavailable):
        extract_signals(None, "1:00", [])
