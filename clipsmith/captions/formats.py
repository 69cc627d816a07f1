from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

from clipsmith.models import CaptionEntry, RetimedCaptionEntry

_CUE_TIME = re.compile(
    r"(?:(\d+):)?(\d{1,2}):(\d{2})[.,](\d{1,3})\s*-->\s*(?:(\d+):)?(\d{1,2}):(\d{2})[.,](\d{1,3})"
)
_TAG = re.compile(r"<[^>]+>")


def parse_captions(text: str) -> list[CaptionEntry]:
    """Parse SRT or WebVTT text into source-timeline caption entries."""

    entries: list[CaptionEntry] = []
    for block in re.split(r"\r?\n\s*\r?\n", text.strip()):
        timing = None
        lines: list[str] = []
        for line in block.splitlines():
            match = _CUE_TIME.search(line)
            if match and timing is None:
                timing = match
                continue
            if timing is None:
                continue
            cleaned = _TAG.sub("", line).strip()
            if cleaned:
                lines.append(cleaned)

        if timing is None or not lines:
            continue

        groups = timing.groups()
        start = _to_seconds(*groups[:4])
        end = _to_seconds(*groups[4:])
        if end <= start:
            continue
        entries.append(CaptionEntry(start=start, end=end, text=" ".join(lines)))

    entries.sort(key=lambda entry: (entry.start, entry.end))
    return entries


def load_caption_file(path: str | Path) -> list[CaptionEntry]:
    return parse_captions(Path(path).read_text(encoding="utf-8-sig"))


def format_srt(entries: Iterable[RetimedCaptionEntry | CaptionEntry]) -> str:
    blocks = []
    for index, entry in enumerate(entries, start=1):
        blocks.append(f"{index}\n{format_timestamp(entry.start)} --> {format_timestamp(entry.end)}\n{entry.text}\n")
    return "\n".join(blocks)


def write_srt(entries: Iterable[RetimedCaptionEntry | CaptionEntry], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_srt(entries), encoding="utf-8")
    return path


def format_timestamp(seconds: float) -> str:
    total_ms = max(int(round(seconds * 1000)), 0)
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def _to_seconds(hours: str | None, minutes: str, seconds: str, fraction: str) -> float:
    millis = int(fraction.ljust(3, "0"))
    return round(int(hours or 0) * 3600 + int(minutes) * 60 + int(seconds) + millis / 1000, 3)
