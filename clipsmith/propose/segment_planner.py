from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from clipsmith.errors import PlanningError
from clipsmith.models import ClipGroup, Highlight, PlanMode, SegmentPlan, TimeWindow
from clipsmith.scoring.highlight_score import fallback_highlight

logger = logging.getLogger(__name__)

RangePair = tuple[float, float]


def to_seconds(value: str) -> float:
    """Convert ``HH:MM:SS``, ``MM:SS`` or ``SS`` (fractions allowed) to seconds."""

    parts = [part.strip() for part in value.strip().split(":")]
    if not parts or len(parts) > 3 or any(part == "" for part in parts):
        raise PlanningError(f"Invalid time value: '{value}'.")

    try:
        numbers = [float(part) for part in parts]
    except ValueError as exc:
        raise PlanningError(f"Invalid time value: '{value}'.") from exc

    total = 0.0
    for number in numbers:
        total = total * 60 + number
    return total


def parse_ranges(text: str, warnings: list[str] | None = None) -> list[RangePair]:
    """Parse ``start-end`` pairs separated by commas; entries without ``-`` are ignored.

    With a ``warnings`` list, entries holding a malformed time value are dropped
    and recorded there instead of raising ``PlanningError``.
    """

    ranges: list[RangePair] = []
    for raw in (text or "").split(","):
        entry = raw.strip()
        if "-" not in entry:
            continue
        start_text, _, end_text = entry.partition("-")
        try:
            ranges.append((to_seconds(start_text), to_seconds(end_text)))
        except PlanningError as exc:
            if warnings is None:
                raise
            _warn(warnings, f"Range '{entry}' ignored: {exc}")
    return ranges


def split_range(start: float, end: float, target_seconds: float) -> list[RangePair]:
    """Cut ``[start, end)`` into consecutive ``target_seconds`` pieces plus a shorter remainder."""

    if target_seconds <= 0:
        raise PlanningError(f"Split target must be positive, got {target_seconds!r}.")
    if end <= start:
        return []

    pieces: list[RangePair] = []
    cursor = start
    while cursor + target_seconds <= end:
        pieces.append((cursor, cursor + target_seconds))
        cursor += target_seconds
    if cursor < end:
        pieces.append((cursor, end))
    return pieces


def plan_from_ranges(
    ranges: Iterable[RangePair],
    *,
    auto_split: bool,
    segment_seconds: float,
    duration_seconds: float | None = None,
    mode: PlanMode = "ranges",
) -> SegmentPlan:
    """One clip per window; ranges are optionally auto-split into fixed-length windows."""

    warnings: list[str] = []
    candidates: list[RangePair] = []
    for index, (start, end) in enumerate(ranges, start=1):
        if start < 0 or end <= start:
            _warn(warnings, f"Range {index} ignored (end <= start: {start:g}s-{end:g}s).")
            continue
        clamped = _clamp_to_duration(index, start, end, duration_seconds, warnings)
        if clamped is None:
            continue
        if auto_split:
            candidates.extend(split_range(clamped[0], clamped[1], segment_seconds))
        else:
            candidates.append(clamped)

    windows = [TimeWindow(start=float(start), end=float(end)) for start, end in candidates]
    clips = [ClipGroup(clip_index=index, window_indices=(index,)) for index in range(len(windows))]
    return SegmentPlan(mode=mode, windows=windows, clips=clips, warnings=warnings)


def plan_whole_video(duration_seconds: float, *, auto_split: bool, segment_seconds: float) -> SegmentPlan:
    return plan_from_ranges(
        [(0.0, float(duration_seconds))],
        auto_split=auto_split,
        segment_seconds=segment_seconds,
        duration_seconds=duration_seconds,
        mode="whole",
    )


def plan_from_highlights(
    highlights: Sequence[Highlight],
    *,
    duration_seconds: float,
    span_seconds: int,
) -> SegmentPlan:
    """One clip per highlight, in rank order; falls back to ``[0, min(D, span)]`` when empty."""

    warnings: list[str] = []
    selected = list(highlights)
    if not selected:
        message = "No highlight detected; falling back to the start of the video."
        logger.warning(message)
        warnings.append(message)
        selected = [fallback_highlight(duration_seconds, span_seconds)]

    windows = [highlight.window for highlight in selected]
    clips = [ClipGroup(clip_index=index, window_indices=(index,)) for index in range(len(windows))]
    return SegmentPlan(mode="highlights", windows=windows, clips=clips, highlights=selected, warnings=warnings)


def plan_template(
    duration_seconds: float,
    *,
    segments_per_clip: int,
    segment_seconds: float,
    gap_seconds: float,
    start_offset_seconds: float = 0.0,
) -> SegmentPlan:
    """Fixed multi-segment clips: ``k`` windows of ``segment_seconds`` separated by ``gap_seconds``.

    After each emitted clip the cursor moves to the end of that clip's last window,
    so consecutive clips never share source time. A clip is only emitted while its
    last window ends within the source.
    """

    if segments_per_clip <= 0:
        raise PlanningError(f"Template needs at least one segment per clip, got {segments_per_clip}.")
    if segment_seconds <= 0:
        raise PlanningError(f"Template segment length must be positive, got {segment_seconds!r}.")
    if gap_seconds < 0 or start_offset_seconds < 0:
        raise PlanningError("Template gap and start offset must be non-negative.")

    windows: list[TimeWindow] = []
    clips: list[ClipGroup] = []
    cursor = float(start_offset_seconds)
    advance = segments_per_clip * segment_seconds + (segments_per_clip - 1) * gap_seconds

    while True:
        starts = [cursor + offset * (segment_seconds + gap_seconds) for offset in range(segments_per_clip)]
        if starts[-1] + segment_seconds > duration_seconds:
            break

        first_index = len(windows)
        windows.extend(TimeWindow(start=start, end=start + segment_seconds) for start in starts)
        clips.append(
            ClipGroup(
                clip_index=len(clips),
                window_indices=tuple(range(first_index, first_index + segments_per_clip)),
            )
        )
        cursor += advance

    warnings: list[str] = []
    if not clips:
        _warn(
            warnings,
            f"Template needs {start_offset_seconds + advance:g}s of source from the start offset; "
            f"source is {duration_seconds:g}s, so no clip was planned.",
        )
    return SegmentPlan(mode="template", windows=windows, clips=clips, warnings=warnings)


def _clamp_to_duration(
    index: int,
    start: float,
    end: float,
    duration_seconds: float | None,
    warnings: list[str],
) -> RangePair | None:
    if duration_seconds is None or end <= duration_seconds:
        return (start, end)

    if start >= duration_seconds:
        _warn(warnings, f"Range {index} ignored (starts at {start:g}s, past the end of the source).")
        return None

    _warn(warnings, f"Range {index} clipped to the source duration ({duration_seconds:g}s).")
    return (start, duration_seconds)


def _warn(warnings: list[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)
