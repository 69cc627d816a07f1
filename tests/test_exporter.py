from __future__ import annotations

import csv
import json
from pathlib import Path

from clipsmith.models import ClipGroup, ClipResult, Highlight, SegmentPlan, TimeWindow
from clipsmith.propose.exporter import CSV_FIELDS, export_run_manifest, plan_to_dict, summarize_results


def _plan() -> SegmentPlan:
    windows = [TimeWindow(0, 20), TimeWindow(30, 50), TimeWindow(60, 80)]
    return SegmentPlan(
        mode="template",
        windows=windows,
        clips=[ClipGroup(clip_index=0, window_indices=(0, 1, 2))],
        highlights=[Highlight(window=TimeWindow(30, 50), score=0.812345, reason="2 timestamps")],
        warnings=["Range 2 clipped to the source duration (80s)."],
    )


def _results(tmp_path: Path) -> list[ClipResult]:
    plan = _plan()
    return [
        ClipResult(
            clip_index=0,
            windows=plan.windows,
            status="ok",
            output_path=tmp_path / "clip_001_0s_80s_blur.mp4",
            rendered_window_indices=[0, 2],
            failed_window_indices=[1],
            caption_path=tmp_path / "clip_001_0s_80s_blur.srt",
            caption_count=4,
        ),
        ClipResult(clip_index=1, windows=[TimeWindow(90, 100)], status="failed", error="ffmpeg failed while concatenating"),
    ]


def test_plan_to_dict_describes_windows_and_groups() -> None:
    payload = plan_to_dict(_plan())

    assert payload["mode"] == "template"
    assert payload["window_count"] == 3
    assert payload["clips"] == [{"clip_index": 0, "window_indices": [0, 1, 2], "duration_seconds": 60.0}]
    assert payload["highlights"][0]["score"] == 0.8123
    assert payload["warnings"] == ["Range 2 clipped to the source duration (80s)."]


def test_summarize_results_counts_statuses(tmp_path: Path) -> None:
    assert summarize_results(_results(tmp_path)) == {"clips": 2, "ok": 1, "empty": 0, "failed": 1}


def test_export_run_manifest_writes_json_and_csv(tmp_path: Path) -> None:
    run_dir = tmp_path / "run"

    paths = export_run_manifest(_plan(), _results(tmp_path), run_dir, source="match.mp4", duration_seconds=120.04567)

    payload = json.loads(paths["json"].read_text(encoding="utf-8"))
    assert payload["source"] == "match.mp4"
    assert payload["duration_seconds"] == 120.046
    assert payload["clips"][0]["failed_window_indices"] == [1]
    assert payload["clips"][1]["output_path"] is None
    assert payload["clips"][1]["error"] == "ffmpeg failed while concatenating"

    with paths["csv"].open(encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        rows = list(reader)
    assert reader.fieldnames == list(CSV_FIELDS)
    assert rows[0]["rendered_windows"] == "0|2"
    assert rows[0]["duration_seconds"] == "60.000"
    assert rows[1]["status"] == "failed"
    assert rows[1]["output_path"] == ""
