from __future__ import annotations

import json
import logging
from pathlib import Path
from time import perf_counter
from typing import Any, Callable, TypeVar, cast

import typer

from clipsmith.config import Settings, load_settings
from clipsmith.features.asr import WhisperTranscriber
from clipsmith.ingest.source import open_source
from clipsmith.logging_config import configure_logging
from clipsmith.models import PlanMode
from clipsmith.pipeline import StepRunner, build_plan, compute_highlights, gather_evidence, run_pipeline
from clipsmith.propose.exporter import highlight_to_dict, plan_to_dict
from clipsmith.render.transcoder import FfmpegTranscoder

app = typer.Typer(help="Cut, vary and assemble short vertical clips from a long source video.")
config_app = typer.Typer(help="Configuration commands.")

app.add_typer(config_app, name="config")

logger = logging.getLogger(__name__)

T = TypeVar("T")

PLAN_MODES: tuple[str, ...] = ("ranges", "whole", "highlights", "template")
CONFIG_ENVVAR = "CLIPSMITH_CONFIG"


def _run_with_progress(step_index: int, total_steps: int, label: str, work: Callable[[], T]) -> T:
    typer.echo(f"[{step_index}/{total_steps}] {label}...", err=True)
    started_at = perf_counter()
    try:
        result = work()
    except Exception:
        elapsed = perf_counter() - started_at
        typer.echo(f"[{step_index}/{total_steps}] {label} failed after {elapsed:.1f}s", err=True)
        raise
    elapsed = perf_counter() - started_at
    typer.echo(f"[{step_index}/{total_steps}] {label} done in {elapsed:.1f}s", err=True)
    return result


def _progress(total_steps: int) -> StepRunner:
    counter = [0]

    def _step(label: str, work: Callable[[], Any]) -> Any:
        counter[0] += 1
        return _run_with_progress(counter[0], total_steps, label, work)

    return _step


def _bootstrap(config_path: Path) -> Settings:
    settings = load_settings(config_path)
    configure_logging(settings.logging)
    logger.debug("Loaded runtime settings from %s", config_path)
    return settings


def _parse_mode(mode: str, ranges: str | None) -> PlanMode:
    normalized = mode.strip().lower()
    if normalized not in PLAN_MODES:
        raise typer.BadParameter(f"Mode must be one of: {', '.join(PLAN_MODES)}.", param_hint="--mode")
    if normalized == "ranges" and not ranges:
        raise typer.BadParameter("Mode 'ranges' needs --ranges, e.g. '0:30-1:30,2:00-2:45'.", param_hint="--ranges")
    return cast(PlanMode, normalized)


def _apply_overrides(
    settings: Settings,
    *,
    segment_seconds: int | None = None,
    auto_split: bool | None = None,
    max_workers: int | None = None,
    layout: str | None = None,
    max_highlights: int | None = None,
    span_seconds: int | None = None,
    include_comments: bool | None = None,
    captions: bool | None = None,
    language: str | None = None,
) -> Settings:
    data = settings.model_dump(mode="python")
    overrides = {
        ("pipeline", "segment_seconds"): segment_seconds,
        ("pipeline", "auto_split"): auto_split,
        ("pipeline", "max_workers"): max_workers,
        ("pipeline", "layout"): layout,
        ("highlights", "max_highlights"): max_highlights,
        ("highlights", "span_seconds"): span_seconds,
        ("highlights", "include_comments"): include_comments,
        ("captions", "enabled"): captions,
        ("captions", "language"): language,
    }
    for (section, key), value in overrides.items():
        if value is not None:
            data[section][key] = value
    return Settings.model_validate(data)


def _fail(exc: Exception) -> typer.Exit:
    logger.error("Pipeline failed: %s", exc)
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


def _config_option() -> Any:
    return typer.Option(
        Path("configs/default.yaml"),
        "--config",
        "-c",
        envvar=CONFIG_ENVVAR,
        help="Path to YAML configuration file.",
    )


@config_app.command("show")
def show_config(config_path: Path = _config_option()) -> None:
    """Print resolved runtime configuration."""

    settings = _bootstrap(config_path)
    typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


@app.command("plan")
def plan_command(
    source: str = typer.Argument(..., help="Local video path or http(s) URL."),
    mode: str = typer.Option("ranges", "--mode", "-m", help="ranges, whole, highlights or template."),
    ranges: str | None = typer.Option(None, "--ranges", "-r", help="Comma separated start-end pairs (HH:MM:SS, MM:SS or SS)."),
    segment_seconds: int | None = typer.Option(None, help="Target window length used by auto-split."),
    auto_split: bool | None = typer.Option(None, "--split/--no-split", help="Cut ranges into fixed-length windows."),
    max_highlights: int | None = typer.Option(None, help="Maximum number of highlights in highlights mode."),
    span_seconds: int | None = typer.Option(None, help="Highlight window length in seconds."),
    config_path: Path = _config_option(),
) -> None:
    """Resolve the segment plan without rendering anything and print it as JSON."""

    settings = _apply_overrides(
        _bootstrap(config_path),
        segment_seconds=segment_seconds,
        auto_split=auto_split,
        max_highlights=max_highlights,
        span_seconds=span_seconds,
    )
    plan_mode = _parse_mode(mode, ranges)
    total_steps = 3 if plan_mode == "highlights" else 2
    step = _progress(total_steps)

    try:
        acquirer = open_source(
            source,
            cache_dir=settings.pipeline.cache_dir,
            settings=settings.source,
            include_comments=settings.highlights.include_comments,
            ffprobe_path=settings.transcoder.ffprobe_path,
        )
        duration = step("Resolve source duration", acquirer.fetch_duration)
        evidence = step("Collect highlight evidence", lambda: gather_evidence(acquirer, settings)) if plan_mode == "highlights" else None
        plan = step(
            "Build segment plan",
            lambda: build_plan(plan_mode, settings, duration_seconds=duration, ranges_text=ranges, evidence=evidence),
        )
    except (RuntimeError, ValueError) as exc:
        raise _fail(exc) from exc

    typer.echo(json.dumps({"source": source, "duration_seconds": duration, **plan_to_dict(plan)}, indent=2))


@app.command("highlights")
def highlights_command(
    source: str = typer.Argument(..., help="Local video path or http(s) URL."),
    max_highlights: int | None = typer.Option(None, "--max", "-n", help="Maximum number of highlights."),
    span_seconds: int | None = typer.Option(None, "--span", help="Highlight window length in seconds."),
    include_comments: bool | None = typer.Option(None, "--comments/--no-comments", help="Mine comments for timecodes."),
    config_path: Path = _config_option(),
) -> None:
    """Score the source and print the top non-overlapping highlight windows."""

    settings = _apply_overrides(
        _bootstrap(config_path),
        max_highlights=max_highlights,
        span_seconds=span_seconds,
        include_comments=include_comments,
    )
    step = _progress(3)

    try:
        acquirer = open_source(
            source,
            cache_dir=settings.pipeline.cache_dir,
            settings=settings.source,
            include_comments=settings.highlights.include_comments,
            ffprobe_path=settings.transcoder.ffprobe_path,
        )
        duration = step("Resolve source duration", acquirer.fetch_duration)
        evidence = step("Collect highlight evidence", lambda: gather_evidence(acquirer, settings))
        highlights = step(
            "Score highlight windows",
            lambda: compute_highlights(
                settings.highlights,
                duration_seconds=duration,
                corpus=evidence.corpus,
                scene_cuts=evidence.scene_cuts,
            ),
        )
    except (RuntimeError, ValueError) as exc:
        raise _fail(exc) from exc

    typer.echo(
        json.dumps(
            {
                "source": source,
                "duration_seconds": duration,
                "timecode_evidence": bool(evidence.corpus),
                "scene_cut_count": len(evidence.scene_cuts),
                "highlights": [highlight_to_dict(highlight) for highlight in highlights],
            },
            indent=2,
        )
    )


@app.command("run")
def run_command(
    source: str = typer.Argument(..., help="Local video path or http(s) URL."),
    mode: str = typer.Option("ranges", "--mode", "-m", help="ranges, whole, highlights or template."),
    ranges: str | None = typer.Option(None, "--ranges", "-r", help="Comma separated start-end pairs (HH:MM:SS, MM:SS or SS)."),
    segment_seconds: int | None = typer.Option(None, help="Target window length used by auto-split."),
    auto_split: bool | None = typer.Option(None, "--split/--no-split", help="Cut ranges into fixed-length windows."),
    max_workers: int | None = typer.Option(None, help="Parallel render workers."),
    layout: str | None = typer.Option(None, help="Vertical layout: blur (fill with blurred copy) or crop."),
    max_highlights: int | None = typer.Option(None, help="Maximum number of highlights in highlights mode."),
    span_seconds: int | None = typer.Option(None, help="Highlight window length in seconds."),
    captions: bool | None = typer.Option(None, "--captions/--no-captions", help="Write re-timed SRT captions next to each clip."),
    language: str | None = typer.Option(None, help="Caption language code."),
    config_path: Path = _config_option(),
) -> None:
    """Run the complete pipeline: plan, render every window, assemble clips, export the manifest."""

    settings = _apply_overrides(
        _bootstrap(config_path),
        segment_seconds=segment_seconds,
        auto_split=auto_split,
        max_workers=max_workers,
        layout=layout,
        max_highlights=max_highlights,
        span_seconds=span_seconds,
        captions=captions,
        language=language,
    )
    plan_mode = _parse_mode(mode, ranges)
    total_steps = 8 if plan_mode == "highlights" else 7

    try:
        acquirer = open_source(
            source,
            cache_dir=settings.pipeline.cache_dir,
            settings=settings.source,
            include_comments=settings.highlights.include_comments,
            ffprobe_path=settings.transcoder.ffprobe_path,
        )
        transcriber = WhisperTranscriber(settings.captions) if settings.captions.transcribe else None
        report = run_pipeline(
            acquirer,
            settings,
            mode=plan_mode,
            transcoder=FfmpegTranscoder(settings.transcoder),
            transcriber=transcriber,
            ranges_text=ranges,
            step=_progress(total_steps),
        )
    except (RuntimeError, ValueError) as exc:
        raise _fail(exc) from exc

    typer.echo(json.dumps(report.to_dict(), indent=2))


if __name__ == "__main__":
    app()
