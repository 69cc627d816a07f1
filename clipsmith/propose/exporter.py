from __future__ import annotations

import csv
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from clipsmith.models import ClipResult, Highlight, SegmentPlan, TimeWindow

MANIFEST_JSON = "manifest.json"
MANIFEST_CSV = "manifest.csv"

CSV_FIELDS = [
    "clip_index",
    "status",
    "start_seconds",
    "end_seconds",
    "duration_seconds",
    "window_count",
    "rendered_windows",
    "failed_windows",
    "output_path",
    "caption_path",
    "caption_count",
    "error",
]


def plan_to_dict(plan: SegmentPlan) -> dict[str, Any]:
    """JSON-ready view of a plan, used by the dry-run CLI and the run manifest."""

    return {
        "mode": plan.mode,
        "window_count": len(plan.windows),
        "clip_count": len(plan.clips),
        "windows": [_window_dict(window) for window in plan.windows],
        "clips": [
            {
                "clip_index": clip.clip_index,
                "window_indices": list(clip.window_indices),
                "duration_seconds": round(sum(window.duration for window in plan.clip_windows(clip)), 3),
            }
            for clip in plan.clips
        ],
        "highlights": [highlight_to_dict(highlight) for highlight in plan.highlights],
        "warnings": list(plan.warnings),
    }


def highlight_to_dict(highlight: Highlight) -> dict[str, Any]:
    return {
        **_window_dict(highlight.window),
        "score": round(highlight.score, 4),
        "reason": highlight.reason,
    }


def export_run_manifest(
    plan: SegmentPlan,
    results: Sequence[ClipResult],
    run_dir: str | Path,
    *,
    source: str,
    duration_seconds: float,
) -> dict[str, Path]:
    """Write ``manifest.json`` and ``manifest.csv`` describing the plan and every clip outcome."""

    resolved_run_dir = Path(run_dir)
    resolved_run_dir.mkdir(parents=True, exist_ok=True)

    json_path = resolved_run_dir / MANIFEST_JSON
    csv_path = resolved_run_dir / MANIFEST_CSV

    payload = {
        "source": source,
        "duration_seconds": round(duration_seconds, 3),
        "summary": summarize_results(results),
        "plan": plan_to_dict(plan),
        "clips": [clip_result_to_dict(result) for result in results],
    }
    json_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    _write_csv(results, csv_path)

    return {"json": json_path, "csv": csv_path}


def summarize_results(results: Sequence[ClipResult]) -> dict[str, int]:
    summary = {"clips": len(results), "ok": 0, "empty": 0, "failed": 0}
    for result in results:
        summary[result.status] += 1
    return summary


def clip_result_to_dict(result: ClipResult) -> dict[str, Any]:
    start, end = _span(result.windows)
    return {
        "clip_index": result.clip_index,
        "status": result.status,
        "start_seconds": start,
        "end_seconds": end,
        "windows": [_window_dict(window) for window in result.windows],
        "rendered_window_indices": list(result.rendered_window_indices),
        "failed_window_indices": list(result.failed_window_indices),
        "output_path": str(result.output_path) if result.output_path else None,
        "caption_path": str(result.caption_path) if result.caption_path else None,
        "caption_count": result.caption_count,
        "error": result.error,
    }


def _write_csv(results: Sequence[ClipResult], path: Path) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for result in results:
            start, end = _span(result.windows)
            writer.writerow(
                {
                    "clip_index": result.clip_index,
                    "status": result.status,
                    "start_seconds": f"{start:.3f}",
                    "end_seconds": f"{end:.3f}",
                    "duration_seconds": f"{sum(window.duration for window in result.windows):.3f}",
                    "window_count": len(result.windows),
                    "rendered_windows": "|".join(str(index) for index in result.rendered_window_indices),
                    "failed_windows": "|".join(str(index) for index in result.failed_window_indices),
                    "output_path": str(result.output_path or ""),
                    "caption_path": str(result.caption_path or ""),
                    "caption_count": result.caption_count,
                    "error": result.error or "",
                }
            )


def _window_dict(window: TimeWindow) -> dict[str, float]:
    return {
        "start_seconds": round(window.start, 3),
        "end_seconds": round(window.end, 3),
        "duration_seconds": round(window.duration, 3),
    }


def _span(windows: Sequence[TimeWindow]) -> tuple[float, float]:
    if not windows:
        return 0.0, 0.0
    return round(windows[0].start, 3), round(windows[-1].end, 3)
