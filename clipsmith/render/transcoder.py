from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from clipsmith.config import TranscoderSettings
from clipsmith.errors import RenderFailure
from clipsmith.models import ClipMetadata, RenderRequest
from clipsmith.process import run_tool
from clipsmith.render.filters import AUDIO_OUTPUT_LABEL, VIDEO_OUTPUT_LABEL, build_filter_complex
from clipsmith.render.metadata import metadata_args

logger = logging.getLogger(__name__)


class FfmpegTranscoder:
    """Media transcoder backed by the ffmpeg CLI; every call is one-shot and time-bounded."""

    def __init__(self, settings: TranscoderSettings | None = None) -> None:
        self.settings = settings or TranscoderSettings()

    def render(self, request: RenderRequest) -> Path:
        request.output_path.parent.mkdir(parents=True, exist_ok=True)
        command = build_render_command(request, self.settings)
        run_tool(
            command,
            tool="ffmpeg",
            action=f"rendering window {request.window.start:.3f}-{request.window.end:.3f}s",
            error_cls=RenderFailure,
            timeout_seconds=self.settings.timeout_seconds,
        )
        _require_output(request.output_path)
        return request.output_path

    def concatenate(self, inputs: Sequence[Path], metadata: ClipMetadata, output_path: Path) -> Path:
        if not inputs:
            raise RenderFailure("Nothing to concatenate: no rendered windows were provided.")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        list_path = output_path.with_name(f"{output_path.stem}.concat.txt")
        list_path.write_text(build_concat_list(inputs), encoding="utf-8")
        try:
            run_tool(
                build_concat_command(list_path, output_path, metadata, ffmpeg_path=self.settings.ffmpeg_path),
                tool="ffmpeg",
                action=f"concatenating {len(inputs)} windows into {output_path.name}",
                error_cls=RenderFailure,
                timeout_seconds=self.settings.timeout_seconds,
            )
        finally:
            list_path.unlink(missing_ok=True)
        _require_output(output_path)
        return output_path

    def extract_audio(self, source_path: Path, output_path: Path, sample_rate: int = 16000) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        command = [
            self.settings.ffmpeg_path,
            "-v",
            "error",
            "-y",
            "-i",
            str(source_path),
            "-vn",
            "-ac",
            "1",
            "-ar",
            str(sample_rate),
            "-c:a",
            "pcm_s16le",
            str(output_path),
        ]
        run_tool(
            command,
            tool="ffmpeg",
            action=f"extracting audio from {source_path.name}",
            error_cls=RenderFailure,
            timeout_seconds=self.settings.timeout_seconds,
        )
        return output_path


def build_render_command(request: RenderRequest, settings: TranscoderSettings) -> list[str]:
    window = request.window
    profile = request.profile
    has_watermark = request.overlays.watermark_path is not None
    has_logo = request.overlays.logo_path is not None and profile.logo is not None

    command = [
        settings.ffmpeg_path,
        "-v",
        "error",
        "-y",
        "-ss",
        f"{window.start:.3f}",
        "-t",
        f"{window.duration:.3f}",
        "-i",
        str(request.source_path),
    ]
    if has_watermark:
        command += ["-i", str(request.overlays.watermark_path)]
    if has_logo:
        command += ["-i", str(request.overlays.logo_path)]

    graph = build_filter_complex(
        profile,
        layout=request.layout,
        has_watermark=has_watermark,
        has_logo=has_logo,
        include_audio=request.include_audio,
        width=settings.output_width,
        height=settings.output_height,
        sample_rate=settings.audio_sample_rate,
    )
    command += ["-filter_complex", graph, "-map", VIDEO_OUTPUT_LABEL]
    if request.include_audio:
        command += ["-map", AUDIO_OUTPUT_LABEL]

    command += [
        "-c:v",
        "libx264",
        "-preset",
        profile.preset,
        "-crf",
        str(profile.crf),
        "-pix_fmt",
        "yuv420p",
    ]
    if request.include_audio:
        command += ["-c:a", "aac", "-b:a", f"{profile.audio_bitrate_kbps}k", "-ar", str(settings.audio_sample_rate)]
    command += ["-map_metadata", "-1", *metadata_args(request.metadata), "-movflags", "+faststart"]
    command.append(str(request.output_path))
    return command


def build_concat_list(inputs: Sequence[Path]) -> str:
    lines = []
    for path in inputs:
        escaped = Path(path).resolve().as_posix().replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    return "\n".join(lines) + "\n"


def build_concat_command(
    list_path: Path,
    output_path: Path,
    metadata: ClipMetadata,
    *,
    ffmpeg_path: str = "ffmpeg",
) -> list[str]:
    return [
        ffmpeg_path,
        "-v",
        "error",
        "-y",
        "-f",
        "concat",
        "-safe",
        "0",
        "-i",
        str(list_path),
        "-map",
        "0",
        "-c",
        "copy",
        "-map_metadata",
        "-1",
        *metadata_args(metadata),
        "-movflags",
        "+faststart",
        str(output_path),
    ]


def _require_output(path: Path) -> None:
    if not path.exists() or path.stat().st_size == 0:
        raise RenderFailure(f"ffmpeg reported success but produced no output at {path}.")
