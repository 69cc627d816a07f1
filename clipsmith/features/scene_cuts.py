from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)

ARTIFACT_NAME = "scene_cuts.json"


def detect_scene_cuts(
    video_path: str,
    cache_dir: str = "data/cache",
    analysis_fps: float = 2.0,
    processing_width: int = 320,
    scene_change_multiplier: float = 2.5,
    min_scene_change_score: float = 0.12,
) -> dict[str, Any]:
    """Sample frames at low FPS and flag abrupt frame-difference spikes as scene cuts."""

    source_path = Path(video_path).expanduser().resolve()
    if not source_path.exists():
        raise FileNotFoundError(f"Video file not found: {source_path}")

    import cv2

    capture = cv2.VideoCapture(str(source_path))
    if not capture.isOpened():
        raise RuntimeError(f"Unable to open video for scene-cut analysis: {source_path}")

    native_fps = float(capture.get(cv2.CAP_PROP_FPS) or 0.0) or max(analysis_fps, 1.0)
    step = max(int(round(native_fps / max(analysis_fps, 0.1))), 1)

    timestamps: list[float] = []
    change_scores: list[float] = []
    previous = None
    try:
        for frame_number, frame in _sampled_frames(capture, step):
            small = _resize_for_motion(frame=frame, processing_width=processing_width, cv2_module=cv2)
            gray = cv2.cvtColor(small, cv2.COLOR_BGR2GRAY)
            if previous is not None:
                timestamps.append(round(frame_number / native_fps, 3))
                change_scores.append(round(float(np.mean(cv2.absdiff(gray, previous)) / 255.0), 6))
            previous = gray
    finally:
        capture.release()

    threshold = scene_cut_threshold(
        change_scores,
        multiplier=scene_change_multiplier,
        minimum=min_scene_change_score,
    )
    cuts = [timestamp for timestamp, score in zip(timestamps, change_scores) if score >= threshold]
    logger.debug("Detected %d scene cuts in %s (threshold %.4f)", len(cuts), source_path, threshold)

    artifact_dir = Path(cache_dir).expanduser().resolve() / "features" / "scene_cuts" / source_path.stem
    artifact_dir.mkdir(parents=True, exist_ok=True)
    artifact_path = artifact_dir / ARTIFACT_NAME

    result = {
        "status": "ok",
        "video_path": str(source_path),
        "analysis_fps": analysis_fps,
        "native_fps": round(native_fps, 3),
        "frame_step": step,
        "compared_frames": len(change_scores),
        "scene_change_threshold": round(threshold, 6),
        "scene_cut_count": len(cuts),
        "scene_cuts": cuts,
    }
    artifact_path.write_text(json.dumps(result, indent=2, sort_keys=True), encoding="utf-8")
    return {**result, "scene_cuts_path": str(artifact_path)}


def _sampled_frames(capture: Any, step: int) -> Iterator[tuple[int, Any]]:
    # Only every ``step``-th frame is decoded.
    frame_number = 0
    while capture.grab():
        if frame_number % step == 0:
            ok, frame = capture.retrieve()
            if not ok:
                return
            yield frame_number, frame
        frame_number += 1


def scene_cut_threshold(scores: list[float], *, multiplier: float, minimum: float) -> float:
    """Adaptive cut threshold: mean + multiplier * std, never below ``minimum``."""

    if not scores:
        return minimum

    mean = float(np.mean(scores))
    std = float(np.std(scores))
    return max(mean + multiplier * std, minimum)


def _resize_for_motion(*, frame: Any, processing_width: int, cv2_module: Any) -> Any:
    if processing_width <= 0:
        return frame

    height, width = frame.shape[:2]
    if width <= processing_width:
        return frame

    target_height = max(int(round(height * processing_width / width)), 1)
    return cv2_module.resize(frame, (processing_width, target_height), interpolation=cv2_module.INTER_AREA)
