from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from clipsmith.config import EffectRanges, LogoPosition, OverlaySettings
from clipsmith.interfaces import MediaTranscoder
from clipsmith.models import LayoutMode, OverlayAssets, RenderRequest, RenderResult, SegmentPlan
from clipsmith.render.effects import describe_profile, generate_effect_profile
from clipsmith.render.metadata import generate_metadata

logger = logging.getLogger(__name__)

WORK_DIR_NAME = ".work"


@dataclass(frozen=True, slots=True)
class RenderJob:
    clip_index: int
    window_index: int
    request: RenderRequest


def resolve_overlays(settings: OverlaySettings, base_dir: Path | None = None) -> OverlayAssets:
    """Check overlay files once per run; a configured but missing logo is disabled with a warning."""

    root = base_dir or Path.cwd()

    logo_path: Path | None = None
    if settings.logo_enabled:
        candidate = _resolve(settings.logo_path, root)
        if candidate.is_file():
            logo_path = candidate
        else:
            logger.warning("Logo enabled but file '%s' was not found; logo disabled.", candidate)

    watermark_path: Path | None = None
    candidate = _resolve(settings.watermark_path, root)
    if candidate.is_file():
        logger.info("Watermark found: %s (applied to every window)", candidate)
        watermark_path = candidate

    return OverlayAssets(logo_path=logo_path, watermark_path=watermark_path)


def work_path(run_dir: Path, clip_index: int, window_index: int) -> Path:
    return run_dir / WORK_DIR_NAME / f"clip_{clip_index + 1:03d}" / f"window_{window_index + 1:03d}.mp4"


def plan_render_jobs(
    plan: SegmentPlan,
    *,
    source_path: Path,
    run_dir: Path,
    ranges: EffectRanges,
    overlays: OverlayAssets,
    layout: LayoutMode = "blur",
    logo_position: LogoPosition = "bottom_right",
    include_audio: bool = True,
    rng: random.Random | None = None,
) -> list[RenderJob]:
    """Attach a freshly sampled effect profile and unique metadata to every planned window."""

    jobs: list[RenderJob] = []
    for clip in plan.clips:
        for window_index in clip.window_indices:
            profile = generate_effect_profile(
                ranges,
                with_logo=overlays.logo_path is not None,
                logo_position=logo_position,
                rng=rng,
            )
            request = RenderRequest(
                source_path=source_path,
                window=plan.windows[window_index],
                profile=profile,
                overlays=overlays,
                metadata=generate_metadata(prefix="segment", rng=rng),
                output_path=work_path(run_dir, clip.clip_index, window_index),
                layout=layout,
                include_audio=include_audio,
            )
            jobs.append(RenderJob(clip_index=clip.clip_index, window_index=window_index, request=request))
    return jobs


def render_jobs(
    transcoder: MediaTranscoder,
    jobs: Sequence[RenderJob],
    *,
    max_workers: int = 1,
) -> dict[int, RenderResult]:
    """Render every job with bounded parallelism; a failed window never stops the others.

    Results are keyed by window index so callers can restore plan order.
    """

    if not jobs:
        return {}

    workers = max(1, min(max_workers, len(jobs)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="render") as executor:
        futures = {job.window_index: executor.submit(_render_one, transcoder, job) for job in jobs}
        return {window_index: future.result() for window_index, future in futures.items()}


def _render_one(transcoder: MediaTranscoder, job: RenderJob) -> RenderResult:
    request = job.request
    window = request.window
    logger.info(
        "Rendering clip %d window %d (%.2fs-%.2fs): %s",
        job.clip_index + 1,
        job.window_index + 1,
        window.start,
        window.end,
        describe_profile(request.profile),
    )
    try:
        output_path = transcoder.render(request)
    except (RuntimeError, ValueError, OSError) as exc:
        logger.error("Failed to render window %d (%.2fs-%.2fs): %s", job.window_index + 1, window.start, window.end, exc)
        return RenderResult(window_index=job.window_index, window=window, error=str(exc))

    return RenderResult(window_index=job.window_index, window=window, output_path=output_path)


def _resolve(path: Path, root: Path) -> Path:
    expanded = Path(path).expanduser()
    return expanded if expanded.is_absolute() else root / expanded
