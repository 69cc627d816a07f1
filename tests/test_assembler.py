from __future__ import annotations

import random
from pathlib import Path

from clipsmith.errors import RenderFailure
from clipsmith.models import CaptionEntry, ClipGroup, RenderResult, TimeWindow
from clipsmith.propose.assembler import assemble_clip, clip_output_path

WINDOWS = [TimeWindow(10, 20), TimeWindow(50, 60), TimeWindow(90, 100)]
CLIP = ClipGroup(clip_index=0, window_indices=(0, 1, 2))


class _ConcatRecorder:
    def __init__(self, fail: bool = False, error: Exception | None = None) -> None:
        self.fail = fail
        self.error = error
        self.calls: list[list[Path]] = []

    def render(self, request):
        raise AssertionError("not used")

    def concatenate(self, inputs, metadata, output_path):
        self.calls.append(list(inputs))
        if self.error is not None:
            raise self.error
        if self.fail:
            raise RenderFailure("ffmpeg failed while concatenating")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b"clip")
        return output_path

    def extract_audio(self, source_path, output_path, sample_rate=16000):
        raise AssertionError("not used")


def _results(tmp_path: Path, failed: set[int]) -> dict[int, RenderResult]:
    results: dict[int, RenderResult] = {}
    for index, window in enumerate(WINDOWS):
        if index in failed:
            results[index] = RenderResult(window_index=index, window=window, error="boom")
            continue
        path = tmp_path / ".work" / "clip_001" / f"window_{index + 1:03d}.mp4"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"window")
        results[index] = RenderResult(window_index=index, window=window, output_path=path)
    return results


def test_clip_output_path_names_first_start_and_last_end(tmp_path: Path) -> None:
    path = clip_output_path(tmp_path, 2, WINDOWS)

    assert path.name == "clip_003_10s_100s_blur.mp4"


def test_assembles_successful_windows_in_order_and_skips_failures(tmp_path: Path) -> None:
    results = _results(tmp_path, failed={1})
    transcoder = _ConcatRecorder()

    clip = assemble_clip(
        transcoder,
        CLIP,
        WINDOWS,
        results,
        output_path=tmp_path / "clip.mp4",
        rng=random.Random(0),
    )

    assert clip.status == "ok"
    assert transcoder.calls == [[results[0].output_path, results[2].output_path]]
    assert clip.rendered_window_indices == [0, 2]
    assert clip.failed_window_indices == [1]
    assert (tmp_path / "clip.mp4").exists()


def test_temporary_windows_are_deleted_after_success(tmp_path: Path) -> None:
    results = _results(tmp_path, failed=set())

    assemble_clip(_ConcatRecorder(), CLIP, WINDOWS, results, output_path=tmp_path / "clip.mp4")

    assert not any(result.output_path.exists() for result in results.values())
    assert not (tmp_path / ".work" / "clip_001").exists()


def test_keep_work_files_leaves_temporaries(tmp_path: Path) -> None:
    results = _results(tmp_path, failed=set())

    assemble_clip(
        _ConcatRecorder(),
        CLIP,
        WINDOWS,
        results,
        output_path=tmp_path / "clip.mp4",
        keep_work_files=True,
    )

    assert all(result.output_path.exists() for result in results.values())


def test_all_windows_failing_produces_no_artifact(tmp_path: Path, caplog) -> None:
    transcoder = _ConcatRecorder()

    clip = assemble_clip(
        transcoder,
        CLIP,
        WINDOWS,
        _results(tmp_path, failed={0, 1, 2}),
        output_path=tmp_path / "clip.mp4",
    )

    assert clip.status == "empty"
    assert clip.output_path is None
    assert transcoder.calls == []
    assert not (tmp_path / "clip.mp4").exists()
    assert "all 3 windows failed" in caplog.text


def test_concat_failure_keeps_temporaries_and_marks_clip_failed(tmp_path: Path) -> None:
    results = _results(tmp_path, failed=set())

    clip = assemble_clip(
        _ConcatRecorder(fail=True),
        CLIP,
        WINDOWS,
        results,
        output_path=tmp_path / "clip.mp4",
    )

    assert clip.status == "failed"
    assert "concatenating" in clip.error
    assert all(result.output_path.exists() for result in results.values())


def test_unexpected_concat_error_marks_only_this_clip_failed(tmp_path: Path) -> None:
    results = _results(tmp_path, failed=set())
    transcoder = _ConcatRecorder(error=UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"))

    clip = assemble_clip(transcoder, CLIP, WINDOWS, results, output_path=tmp_path / "clip.mp4")

    assert clip.status == "failed"
    assert "invalid start byte" in clip.error
    assert clip.output_path is None


def test_captions_are_retimed_against_rendered_windows_only(tmp_path: Path) -> None:
    captions = [
        CaptionEntry(12, 14, "first"),
        CaptionEntry(52, 54, "dropped with its window"),
        CaptionEntry(91, 93, "third"),
    ]

    clip = assemble_clip(
        _ConcatRecorder(),
        CLIP,
        WINDOWS,
        _results(tmp_path, failed={1}),
        output_path=tmp_path / "clip.mp4",
        captions=captions,
    )

    assert clip.caption_count == 2
    assert clip.caption_path == tmp_path / "clip.srt"
    srt = clip.caption_path.read_text(encoding="utf-8")
    assert "00:00:02,000 --> 00:00:04,000\nfirst" in srt
    assert "00:00:11,000 --> 00:00:13,000\nthird" in srt
    assert "dropped" not in srt


def test_no_caption_file_without_captions(tmp_path: Path) -> None:
    clip = assemble_clip(
        _ConcatRecorder(),
        CLIP,
        WINDOWS,
        _results(tmp_path, failed=set()),
        output_path=tmp_path / "clip.mp4",
        captions=None,
    )

    assert clip.caption_path is None
    assert not (tmp_path / "clip.srt").exists()
