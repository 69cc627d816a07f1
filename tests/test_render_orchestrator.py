from __future__ import annotations

import random
import sys
import threading
import time
from pathlib import Path

import pytest

from clipsmith.config import EffectRanges, OverlaySettings, TranscoderSettings
from clipsmith.errors import RenderFailure
from clipsmith.models import OverlayAssets, RenderRequest
from clipsmith.propose.segment_planner import plan_from_ranges, plan_template
from clipsmith.render.orchestrator import plan_render_jobs, render_jobs, resolve_overlays, work_path
from clipsmith.render.transcoder import FfmpegTranscoder


class _FakeTranscoder:
    def __init__(self, fail_starts: set[float] | None = None, delay_for: dict[float, float] | None = None) -> None:
        self.fail_starts = fail_starts or set()
        self.delay_for = delay_for or {}
        self.requests: list[RenderRequest] = []
        self._lock = threading.Lock()

    def render(self, request: RenderRequest) -> Path:
        with self._lock:
            self.requests.append(request)
        time.sleep(self.delay_for.get(request.window.start, 0.0))
        if request.window.start in self.fail_starts:
            raise RenderFailure(f"ffmpeg failed while rendering window {request.window.start}")
        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        request.output_path.write_bytes(b"video")
        return request.output_path

    def concatenate(self, inputs, metadata, output_path):
        raise AssertionError("not used")

    def extract_audio(self, source_path, output_path, sample_rate=16000):
        raise AssertionError("not used")


def _jobs(tmp_path: Path, plan, **kwargs):
    return plan_render_jobs(
        plan,
        source_path=tmp_path / "source.mp4",
        run_dir=tmp_path / "run",
        ranges=EffectRanges(),
        overlays=OverlayAssets(),
        rng=random.Random(42),
        **kwargs,
    )


def test_resolve_overlays_disables_missing_logo(tmp_path: Path, caplog) -> None:
    (tmp_path / "watermark.png").write_bytes(b"png")
    settings = OverlaySettings(logo_path=Path("missing.jpg"), watermark_path=Path("watermark.png"))

    overlays = resolve_overlays(settings, base_dir=tmp_path)

    assert overlays.logo_path is None
    assert overlays.watermark_path == tmp_path / "watermark.png"
    assert "logo disabled" in caplog.text


def test_resolve_overlays_respects_disabled_logo(tmp_path: Path) -> None:
    (tmp_path / "logo.jpg").write_bytes(b"jpg")
    settings = OverlaySettings(logo_enabled=False, logo_path=Path("logo.jpg"))

    assert resolve_overlays(settings, base_dir=tmp_path).logo_path is None


def test_plan_render_jobs_gives_each_window_fresh_profile_and_distinct_path(tmp_path: Path) -> None:
    plan = plan_template(200, segments_per_clip=3, segment_seconds=20, gap_seconds=10)

    jobs = _jobs(tmp_path, plan)

    assert len(jobs) == len(plan.windows)
    assert len({job.request.output_path for job in jobs}) == len(jobs)
    assert len({job.request.profile for job in jobs}) == len(jobs)
    assert len({job.request.metadata.title for job in jobs}) == len(jobs)
    assert jobs[4].request.output_path == work_path(tmp_path / "run", 1, 4)
    assert jobs[4].request.output_path.parts[-3:] == (".work", "clip_002", "window_005.mp4")


def test_plan_render_jobs_only_attaches_logo_when_available(tmp_path: Path) -> None:
    plan = plan_from_ranges([(0, 30)], auto_split=False, segment_seconds=61)

    with_logo = plan_render_jobs(
        plan,
        source_path=tmp_path / "source.mp4",
        run_dir=tmp_path,
        ranges=EffectRanges(),
        overlays=OverlayAssets(logo_path=tmp_path / "logo.jpg"),
        logo_position="top_right",
    )

    assert with_logo[0].request.profile.logo is not None
    assert with_logo[0].request.profile.logo.position == "top_right"
    assert _jobs(tmp_path, plan)[0].request.profile.logo is None


def test_render_jobs_isolates_failures(tmp_path: Path) -> None:
    plan = plan_from_ranges([(0, 90)], auto_split=True, segment_seconds=30)
    transcoder = _FakeTranscoder(fail_starts={30.0})

    results = render_jobs(transcoder, _jobs(tmp_path, plan), max_workers=2)

    assert [results[index].ok for index in range(3)] == [True, False, True]
    assert "rendering window 30.0" in results[1].error
    assert len(transcoder.requests) == 3


def test_render_jobs_returns_results_keyed_by_window_regardless_of_completion_order(tmp_path: Path) -> None:
    plan = plan_from_ranges([(0, 90)], auto_split=True, segment_seconds=30)
    transcoder = _FakeTranscoder(delay_for={0.0: 0.2})

    results = render_jobs(transcoder, _jobs(tmp_path, plan), max_workers=3)

    assert list(results) == [0, 1, 2]
    assert [results[index].window.start for index in range(3)] == [0.0, 30.0, 60.0]


def test_render_jobs_with_no_jobs() -> None:
    assert render_jobs(_FakeTranscoder(), []) == {}


class _UndecodableTranscoder(_FakeTranscoder):
    def render(self, request: RenderRequest) -> Path:
        if request.window.start == 0.0:
            raise UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte")
        return super().render(request)


def test_render_jobs_isolates_unexpected_transcoder_errors(tmp_path: Path) -> None:
    plan = plan_from_ranges([(0, 60)], auto_split=True, segment_seconds=30)

    results = render_jobs(_UndecodableTranscoder(), _jobs(tmp_path, plan), max_workers=2)

    assert [results[index].ok for index in range(2)] == [False, True]
    assert "invalid start byte" in results[0].error


@pytest.mark.skipif(sys.platform == "win32", reason="uses a POSIX shell script as ffmpeg")
def test_render_jobs_survives_non_utf8_ffmpeg_stderr(tmp_path: Path) -> None:
    fake_ffmpeg = tmp_path / "ffmpeg"
    fake_ffmpeg.write_text("#!/bin/sh\nprintf 'bad \\377\\376 name\\n' >&2\nexit 1\n", encoding="ascii")
    fake_ffmpeg.chmod(0o755)
    transcoder = FfmpegTranscoder(TranscoderSettings(ffmpeg_path=str(fake_ffmpeg)))
    plan = plan_from_ranges([(0, 60)], auto_split=True, segment_seconds=30)

    results = render_jobs(transcoder, _jobs(tmp_path, plan), max_workers=2)

    assert sorted(results) == [0, 1]
    assert not any(result.ok for result in results.values())
    assert all("ffmpeg failed while rendering" in result.error for result in results.values())
    assert "�" in results[0].error
