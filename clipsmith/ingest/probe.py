from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any

from clipsmith.errors import DurationUnavailable, SourceUnavailable
from clipsmith.process import run_tool

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 60


def probe_media(media_path: str | Path, *, ffprobe_path: str = "ffprobe") -> dict[str, Any]:
    """Probe container and stream metadata of a local media file via ffprobe."""

    source_path = Path(media_path).expanduser().resolve()
    if not source_path.exists():
        raise SourceUnavailable(f"Media file not found: {source_path}")

    payload = _run_ffprobe(source_path, ffprobe_path=ffprobe_path)
    return _normalize_probe_payload(source_path, payload)


def probe_duration(media_path: str | Path, *, ffprobe_path: str = "ffprobe") -> float:
    """Total duration in seconds; the container duration wins over stream durations."""

    try:
        metadata = probe_media(media_path, ffprobe_path=ffprobe_path)
    except SourceUnavailable as exc:
        raise DurationUnavailable(str(exc)) from exc

    candidates = [metadata["format"]["duration_seconds"]]
    candidates += [stream["duration_seconds"] for stream in metadata["streams"]]
    for value in candidates:
        if value is not None and math.isfinite(value) and value > 0:
            return value

    raise DurationUnavailable(f"ffprobe reported no usable duration for {metadata['media_path']}.")


def has_audio_stream(media_path: str | Path, *, ffprobe_path: str = "ffprobe") -> bool:
    return probe_media(media_path, ffprobe_path=ffprobe_path)["audio_stream_count"] > 0


def _run_ffprobe(media_path: Path, *, ffprobe_path: str = "ffprobe") -> dict[str, Any]:
    command = [
        ffprobe_path,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(media_path),
    ]
    completed = run_tool(
        command,
        tool="ffprobe",
        action=f"probing media file {media_path.name}",
        error_cls=SourceUnavailable,
        timeout_seconds=PROBE_TIMEOUT_SECONDS,
    )

    try:
        return json.loads(completed.stdout)
    except json.JSONDecodeError as exc:
        raise SourceUnavailable("ffprobe returned invalid JSON output.") from exc


def _normalize_probe_payload(media_path: Path, payload: dict[str, Any]) -> dict[str, Any]:
    format_entry = payload.get("format", {})
    streams = [_normalize_stream(stream) for stream in payload.get("streams", [])]

    return {
        "media_path": str(media_path),
        "format": {
            "format_name": format_entry.get("format_name"),
            "duration_seconds": _to_float(format_entry.get("duration")),
            "size_bytes": _to_int(format_entry.get("size")),
        },
        "streams": streams,
        "audio_stream_count": sum(1 for stream in streams if stream["codec_type"] == "audio"),
        "video_stream_count": sum(1 for stream in streams if stream["codec_type"] == "video"),
    }


def _normalize_stream(stream: dict[str, Any]) -> dict[str, Any]:
    return {
        "index": stream.get("index"),
        "codec_type": stream.get("codec_type"),
        "codec_name": stream.get("codec_name"),
        "width": _to_int(stream.get("width")),
        "height": _to_int(stream.get("height")),
        "duration_seconds": _to_float(stream.get("duration")),
    }


def _to_float(raw_value: Any) -> float | None:
    if raw_value in (None, "N/A", ""):
        return None
    return float(raw_value)


def _to_int(raw_value: Any) -> int | None:
    if raw_value in (None, "N/A", ""):
        return None
    return int(raw_value)
