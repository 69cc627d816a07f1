from __future__ import annotations

import logging
import random
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, TypeVar

from clipsmith.config import HighlightSettings, Settings
from clipsmith.errors import CaptionUnavailable, PlanningError, RenderFailure, SourceUnavailable
from clipsmith.features.scene_cuts import detect_scene_cuts
from clipsmith.features.signals import extract_signals, signal_length
from clipsmith.ingest.probe import has_audio_stream
from clipsmith.ingest.source import run_directory
from clipsmith.interfaces import MediaTranscoder, SourceAcquirer, Transcriber
from clipsmith.models import CaptionEntry, ClipResult, Highlight, PlanMode, SegmentPlan
from clipsmith.propose.assembler import assemble_clip, clip_output_path
from clipsmith.propose.exporter import export_run_manifest
from clipsmith.propose.segment_planner import (
    parse_ranges,
    plan_from_highlights,
    plan_from_ranges,
    plan_template,
    plan_whole_video,
)
from clipsmith.render.orchestrator import WORK_DIR_NAME, plan_render_jobs, render_jobs, resolve_overlays
from clipsmith.scoring.highlight_score import select_highlights

logger = logging.getLogger(__name__)

T = TypeVar("T")
StepRunner = Callable[[str, Callable[[], Any]], Any]


@dataclass(slots=True)
class Evidence:
    corpus: str = ""
    scene_cuts: list[float] = field(default_factory=list)


@dataclass(slots=True)
class RunReport:
    run_dir: Path
    duration_seconds: float
    plan: SegmentPlan
    clips: list[ClipResult]
    manifest_paths: dict[str, Path]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "ok" if any(clip.status == "ok" for clip in self.clips) else "no_output",
            "run_dir": str(self.run_dir),
            "duration_seconds": self.duration_seconds,
            "mode": self.plan.mode,
            "clip_count": len(self.clips),
            "clips_ok": sum(1 for clip in self.clips if clip.status == "ok"),
            "warnings": list(self.plan.warnings),
            "outputs": {key: str(path) for key, path in self.manifest_paths.items()},
        }


def compute_highlights(
    settings: HighlightSettings,
    *,
    duration_seconds: float,
    corpus: str | None,
    scene_cuts: list[float] | None,
) -> list[Highlight]:
    signals = extract_signals(
        duration_seconds,
        corpus,
        scene_cuts,
        timestamp_radius_seconds=settings.timestamp_radius_seconds,
        cut_radius_seconds=settings.cut_radius_seconds,
    )
    return select_highlights(
        signals,
        span_seconds=settings.span_seconds,
        max_count=settings.max_highlights,
        timestamp_weight=settings.timestamp_weight,
        cut_weight=settings.cut_weight,
    )


def build_plan(
    mode: PlanMode,
    settings: Settings,
    *,
    duration_seconds: float,
    ranges_text: str | None = None,
    evidence: Evidence | None = None,
) -> SegmentPlan:
    """Resolve a selection mode into a complete plan. Pure: no media is touched here."""

    # Raises DurationUnavailable before any planning work.
    signal_length(duration_seconds)
    pipeline = settings.pipeline

    if mode == "ranges":
        parse_warnings: list[str] = []
        ranges = parse_ranges(ranges_text or "", parse_warnings)
        if not ranges:
            message = f"No usable 'start-end' range found in {ranges_text!r}."
            logger.warning(message)
            parse_warnings.append(message)
        plan = plan_from_ranges(
            ranges,
            auto_split=pipeline.auto_split,
            segment_seconds=pipeline.segment_seconds,
            duration_seconds=duration_seconds,
        )
        plan.warnings[:0] = parse_warnings
    elif mode == "whole":
        plan = plan_whole_video(
            duration_seconds,
            auto_split=pipeline.auto_split,
            segment_seconds=pipeline.segment_seconds,
        )
    elif mode == "highlights":
        evidence = evidence or Evidence()
        highlights = compute_highlights(
            settings.highlights,
            duration_seconds=duration_seconds,
            corpus=evidence.corpus,
            scene_cuts=evidence.scene_cuts,
        )
        plan = plan_from_highlights(
            highlights,
            duration_seconds=duration_seconds,
            span_seconds=settings.highlights.span_seconds,
        )
    elif mode == "template":
        template = settings.template
        plan = plan_template(
            duration_seconds,
            segments_per_clip=template.segments_per_clip,
            segment_seconds=template.segment_seconds,
            gap_seconds=template.gap_seconds,
            start_offset_seconds=template.start_offset_seconds,
        )
    else:
        raise PlanningError(f"Unknown selection mode: {mode!r}")

    logger.info("Planned %d windows in %d clips (mode=%s).", len(plan.windows), len(plan.clips), plan.mode)
    return plan


def gather_evidence(source: SourceAcquirer, settings: Settings) -> Evidence:
    """Collect description/comment text and scene cuts for highlight scoring."""

    highlights = settings.highlights
    corpus = source.fetch_description_and_comments()

    try:
        scene_payload = detect_scene_cuts(
            video_path=str(source.media_path),
            cache_dir=str(settings.pipeline.cache_dir),
            analysis_fps=highlights.analysis_fps,
            processing_width=highlights.processing_width,
            scene_change_multiplier=highlights.scene_change_multiplier,
            min_scene_change_score=highlights.min_scene_change_score,
        )
        scene_cuts = [float(cut) for cut in scene_payload["scene_cuts"]]
    except (RuntimeError, OSError) as exc:
        logger.warning("Scene-cut detection failed; continuing without cuts: %s", exc)
        scene_cuts = []

    return Evidence(corpus=corpus, scene_cuts=scene_cuts)


def load_captions(
    source: SourceAcquirer,
    settings: Settings,
    *,
    transcoder: MediaTranscoder,
    transcriber: Transcriber | None,
    work_dir: Path,
) -> list[CaptionEntry] | None:
    """Existing source captions first, then a transcription of the source audio."""

    caption_settings = settings.captions
    if not caption_settings.enabled:
        return None

    captions = source.fetch_existing_captions(caption_settings.language)
    if captions:
        logger.info("Using %d existing '%s' captions.", len(captions), caption_settings.language)
        return captions

    if not caption_settings.transcribe or transcriber is None:
        logger.info("No source captions and transcription is disabled; clips will have no captions.")
        return None

    try:
        audio_path = transcoder.extract_audio(source.media_path, work_dir / "captions_audio.wav")
        captions = transcriber.transcribe(audio_path, caption_settings.language)
    except (CaptionUnavailable, RenderFailure) as exc:
        logger.warning("Transcription unavailable; clips will have no captions: %s", exc)
        return None

    if not captions:
        logger.info("Transcription produced no text.")
    return captions


def execute_plan(
    plan: SegmentPlan,
    settings: Settings,
    *,
    source_path: Path,
    run_dir: Path,
    transcoder: MediaTranscoder,
    captions: list[CaptionEntry] | None = None,
    include_audio: bool = True,
    rng: random.Random | None = None,
    step: StepRunner | None = None,
) -> list[ClipResult]:
    """Render every planned window, then assemble each clip from its successful windows."""

    runner = step or _run_step
    overlays = resolve_overlays(settings.overlays)
    jobs = plan_render_jobs(
        plan,
        source_path=source_path,
        run_dir=run_dir,
        ranges=settings.effects,
        overlays=overlays,
        layout=settings.pipeline.layout,
        logo_position=settings.overlays.logo_position,
        include_audio=include_audio,
        rng=rng,
    )
    results = runner(
        f"Render {len(jobs)} windows",
        lambda: render_jobs(transcoder, jobs, max_workers=settings.pipeline.max_workers),
    )

    def _assemble_all() -> list[ClipResult]:
        clip_results: list[ClipResult] = []
        for clip in plan.clips:
            windows = plan.clip_windows(clip)
            clip_results.append(
                assemble_clip(
                    transcoder,
                    clip,
                    windows,
                    results,
                    output_path=clip_output_path(run_dir, clip.clip_index, windows, settings.pipeline.layout),
                    captions=captions,
                    keep_work_files=settings.pipeline.keep_work_dir,
                    rng=rng,
                )
            )
        return clip_results

    clip_results = runner(f"Assemble {len(plan.clips)} clips", _assemble_all)

    work_dir = run_dir / WORK_DIR_NAME
    keep = settings.pipeline.keep_work_dir or any(clip.status == "failed" for clip in clip_results)
    if work_dir.exists() and not keep:
        shutil.rmtree(work_dir)
    return clip_results


def run_pipeline(
    source: SourceAcquirer,
    settings: Settings,
    *,
    mode: PlanMode,
    transcoder: MediaTranscoder,
    transcriber: Transcriber | None = None,
    ranges_text: str | None = None,
    rng: random.Random | None = None,
    today: date | None = None,
    step: StepRunner | None = None,
) -> RunReport:
    """Plan, render, assemble and export one source end to end."""

    runner = step or _run_step

    duration = runner("Resolve source duration", source.fetch_duration)
    evidence = runner("Collect highlight evidence", lambda: gather_evidence(source, settings)) if mode == "highlights" else None
    plan = runner(
        "Build segment plan",
        lambda: build_plan(mode, settings, duration_seconds=duration, ranges_text=ranges_text, evidence=evidence),
    )
    if not plan.windows:
        return _report_empty_plan(source, settings, plan, duration, today=today, runner=runner)

    media_path = runner("Acquire source media", lambda: source.media_path)
    run_dir = run_directory(settings.pipeline.output_dir, source.title, today=today)
    run_dir.mkdir(parents=True, exist_ok=True)

    include_audio = _probe_audio(media_path, settings)
    captions = runner(
        "Load captions",
        lambda: load_captions(
            source,
            settings,
            transcoder=transcoder,
            transcriber=transcriber,
            work_dir=run_dir / WORK_DIR_NAME,
        ),
    )

    clip_results = execute_plan(
        plan,
        settings,
        source_path=media_path,
        run_dir=run_dir,
        transcoder=transcoder,
        captions=captions,
        include_audio=include_audio,
        rng=rng,
        step=runner,
    )

    manifest_paths = runner(
        "Export manifest",
        lambda: export_run_manifest(
            plan,
            clip_results,
            run_dir,
            source=str(media_path),
            duration_seconds=duration,
        ),
    )
    return RunReport(
        run_dir=run_dir,
        duration_seconds=duration,
        plan=plan,
        clips=clip_results,
        manifest_paths=manifest_paths,
    )


def _report_empty_plan(
    source: SourceAcquirer,
    settings: Settings,
    plan: SegmentPlan,
    duration: float,
    *,
    today: date | None,
    runner: StepRunner,
) -> RunReport:
    # Nothing is acquired or rendered; the manifest still records the warnings.
    message = "The plan contains no window to render; nothing was rendered."
    logger.warning(message)
    plan.warnings.append(message)

    run_dir = run_directory(settings.pipeline.output_dir, source.title, today=today)
    manifest_paths = runner(
        "Export manifest",
        lambda: export_run_manifest(plan, [], run_dir, source=str(source.title), duration_seconds=duration),
    )
    return RunReport(run_dir=run_dir, duration_seconds=duration, plan=plan, clips=[], manifest_paths=manifest_paths)


def _probe_audio(media_path: Path, settings: Settings) -> bool:
    try:
        present = has_audio_stream(media_path, ffprobe_path=settings.transcoder.ffprobe_path)
    except SourceUnavailable as exc:
        logger.warning("Could not probe audio streams (%s); assuming the source has audio.", exc)
        return True
    if not present:
        logger.info("Source has no audio stream; rendering video only.")
    return present


def _run_step(label: str, work: Callable[[], T]) -> T:
    logger.debug("Step: %s", label)
    return work()
