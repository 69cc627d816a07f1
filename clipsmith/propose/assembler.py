from __future__ import annotations

import logging
import random
from collections.abc import Mapping, Sequence
from pathlib import Path

from clipsmith.captions.formats import write_srt
from clipsmith.captions.retime import retime_captions
from clipsmith.interfaces import MediaTranscoder
from clipsmith.models import CaptionEntry, ClipGroup, ClipResult, LayoutMode, RenderResult, TimeWindow
from clipsmith.render.metadata import generate_metadata

logger = logging.getLogger(__name__)


def clip_output_path(run_dir: Path, clip_index: int, windows: Sequence[TimeWindow], layout: LayoutMode = "blur") -> Path:
    start = windows[0].start if windows else 0.0
    end = windows[-1].end if windows else 0.0
    return run_dir / f"clip_{clip_index + 1:03d}_{start:g}s_{end:g}s_{layout}.mp4"


def assemble_clip(
    transcoder: MediaTranscoder,
    clip: ClipGroup,
    windows: Sequence[TimeWindow],
    results: Mapping[int, RenderResult],
    *,
    output_path: Path,
    captions: Sequence[CaptionEntry] | None = None,
    keep_work_files: bool = False,
    rng: random.Random | None = None,
) -> ClipResult:
    """Concatenate a clip's successfully rendered windows, in window order, into one artifact.

    ``windows`` is aligned with ``clip.window_indices``. Failed windows are left
    out; a clip with no successful window produces no artifact at all.
    """

    rendered: list[RenderResult] = []
    failed: list[int] = []
    for window_index in clip.window_indices:
        result = results.get(window_index)
        if result is not None and result.ok:
            rendered.append(result)
        else:
            failed.append(window_index)

    clip_result = ClipResult(
        clip_index=clip.clip_index,
        windows=list(windows),
        status="empty",
        rendered_window_indices=[result.window_index for result in rendered],
        failed_window_indices=failed,
    )

    if not rendered:
        message = f"Clip {clip.clip_index + 1}: all {len(failed)} windows failed to render; clip skipped."
        logger.warning(message)
        clip_result.error = message
        return clip_result

    if failed:
        logger.warning(
            "Clip %d: assembling %d of %d windows (%d failed).",
            clip.clip_index + 1,
            len(rendered),
            len(clip.window_indices),
            len(failed),
        )

    artifacts = [result.output_path for result in rendered if result.output_path is not None]
    try:
        transcoder.concatenate(artifacts, generate_metadata(prefix="clip", rng=rng), output_path)
    except (RuntimeError, ValueError, OSError) as exc:
        logger.error("Clip %d: concatenation failed: %s", clip.clip_index + 1, exc)
        clip_result.status = "failed"
        clip_result.error = str(exc)
        return clip_result

    clip_result.status = "ok"
    clip_result.output_path = output_path
    logger.info("Clip %d assembled: %s", clip.clip_index + 1, output_path)

    if not keep_work_files:
        _remove_artifacts(artifacts)

    retimed = retime_captions(captions, [result.window for result in rendered])
    if retimed:
        clip_result.caption_path = write_srt(retimed, output_path.with_suffix(".srt"))
        clip_result.caption_count = len(retimed)
    elif captions:
        logger.info("Clip %d: no caption falls fully inside its windows.", clip.clip_index + 1)

    return clip_result


def _remove_artifacts(paths: Sequence[Path]) -> None:
    for path in paths:
        path.unlink(missing_ok=True)
        parent = path.parent
        if parent.exists() and not any(parent.iterdir()):
            parent.rmdir()
