from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path
from typing import Any

from clipsmith.captions.formats import load_caption_file, parse_captions
from clipsmith.config import SourceSettings
from clipsmith.errors import DurationUnavailable, SourceUnavailable
from clipsmith.ingest.probe import probe_duration
from clipsmith.models import CaptionEntry

logger = logging.getLogger(__name__)

CAPTION_SUFFIXES = (".srt", ".vtt")
_UNSAFE_TITLE_CHARS = re.compile(r"[^a-zA-Z0-9\-_ ]")


def sanitize_title(title: str, fallback: str = "video") -> str:
    cleaned = _UNSAFE_TITLE_CHARS.sub("_", title.strip())
    cleaned = re.sub(r"\s+", "_", cleaned).strip("_")
    return cleaned or fallback


def run_directory(output_dir: Path, title: str, today: date | None = None) -> Path:
    """Per-run output folder, ``<output_dir>/<title>_<YYYY-MM-DD>``."""

    stamp = (today or date.today()).isoformat()
    return Path(output_dir) / f"{sanitize_title(title)}_{stamp}"


def is_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


class LocalSource:
    """Source acquirer for a media file already on disk.

    Optional sidecars next to the media provide the evidence text
    (``<stem>.txt``) and captions (``<stem>.<lang>.srt`` or ``.vtt``).
    """

    def __init__(self, path: str | Path, *, ffprobe_path: str = "ffprobe") -> None:
        self._path = Path(path).expanduser().resolve()
        if not self._path.is_file():
            raise SourceUnavailable(f"Media file not found: {self._path}")
        self._ffprobe_path = ffprobe_path

    @property
    def media_path(self) -> Path:
        return self._path

    @property
    def title(self) -> str:
        return self._path.stem

    def fetch_duration(self) -> float:
        return probe_duration(self._path, ffprobe_path=self._ffprobe_path)

    def fetch_description_and_comments(self) -> str:
        sidecar = self._path.with_suffix(".txt")
        if not sidecar.is_file():
            logger.info("No description sidecar found at %s.", sidecar)
            return ""
        return sidecar.read_text(encoding="utf-8", errors="replace")

    def fetch_existing_captions(self, language: str) -> list[CaptionEntry] | None:
        for suffix in CAPTION_SUFFIXES:
            candidate = self._path.with_name(f"{self._path.stem}.{language}{suffix}")
            if candidate.is_file():
                entries = load_caption_file(candidate)
                logger.info("Loaded %d captions from %s.", len(entries), candidate.name)
                return entries or None
        return None


class YtDlpSource:
    """Source acquirer for a remote video, resolved and downloaded with yt-dlp.

    Metadata is fetched once and cached on the instance; the media download and
    the subtitle files land under ``<cache_dir>/sources/<video id>/`` and are
    reused by later runs.
    """

    def __init__(
        self,
        url: str,
        *,
        cache_dir: Path,
        settings: SourceSettings | None = None,
        include_comments: bool = True,
        ffprobe_path: str = "ffprobe",
    ) -> None:
        self.url = url
        self.cache_dir = Path(cache_dir)
        self.settings = settings or SourceSettings()
        self.include_comments = include_comments
        self._ffprobe_path = ffprobe_path
        self._info: dict[str, Any] | None = None
        self._media_path: Path | None = None

    @property
    def info(self) -> dict[str, Any]:
        if self._info is None:
            options: dict[str, Any] = {"skip_download": True, "quiet": True, "no_warnings": True}
            if self.include_comments:
                options["getcomments"] = True
                options["extractor_args"] = {"youtube": {"max_comments": [str(self.settings.max_comments)]}}
            self._info = self._extract(options, download=False)
        return self._info

    @property
    def source_dir(self) -> Path:
        return self.cache_dir / "sources" / sanitize_title(str(self.info.get("id") or "video"))

    @property
    def title(self) -> str:
        return str(self.info.get("title") or "video")

    @property
    def media_path(self) -> Path:
        if self._media_path is None:
            self._media_path = self._download()
        return self._media_path

    def fetch_duration(self) -> float:
        duration = self.info.get("duration")
        if isinstance(duration, int | float) and duration > 0:
            return float(duration)
        logger.info("yt-dlp reported no duration for %s; probing the download.", self.url)
        try:
            return probe_duration(self.media_path, ffprobe_path=self._ffprobe_path)
        except SourceUnavailable as exc:
            raise DurationUnavailable(str(exc)) from exc

    def fetch_description_and_comments(self) -> str:
        parts = [str(self.info.get("description") or "")]
        comments = self.info.get("comments") or []
        parts += [str(comment.get("text") or "") for comment in comments]
        if self.include_comments:
            logger.info("Collected description and %d comments for timecode mining.", len(comments))
        return "\n".join(part for part in parts if part)

    def fetch_existing_captions(self, language: str) -> list[CaptionEntry] | None:
        target_dir = self.source_dir / "subtitles"
        existing = _find_caption_file(target_dir, language)
        if existing is None:
            options = {
                "skip_download": True,
                "writesubtitles": True,
                "writeautomaticsub": True,
                "subtitleslangs": [language],
                "subtitlesformat": "vtt/srt/best",
                "outtmpl": str(target_dir / "%(id)s.%(ext)s"),
                "quiet": True,
                "no_warnings": True,
            }
            try:
                self._extract(options, download=True)
            except SourceUnavailable as exc:
                logger.warning("Could not fetch '%s' subtitles: %s", language, exc)
                return None
            existing = _find_caption_file(target_dir, language)

        if existing is None:
            return None
        entries = parse_captions(existing.read_text(encoding="utf-8-sig"))
        logger.info("Loaded %d '%s' captions from %s.", len(entries), language, existing.name)
        return entries or None

    def _download(self) -> Path:
        target_dir = self.source_dir
        cached = _finished_downloads(target_dir)
        if cached:
            logger.info("Using cached download %s.", cached[0])
            return cached[0]

        target_dir.mkdir(parents=True, exist_ok=True)
        options = {
            "format": self.settings.ytdlp_format,
            "outtmpl": str(target_dir / "media.%(ext)s"),
            "merge_output_format": "mp4",
            "quiet": True,
            "no_warnings": True,
            "overwrites": True,
        }
        logger.info("Downloading %s to %s.", self.url, target_dir)
        self._extract(options, download=True)

        downloaded = _finished_downloads(target_dir)
        if not downloaded:
            raise SourceUnavailable(f"yt-dlp finished but no media file was written to {target_dir}.")
        return downloaded[0]

    def _extract(self, options: dict[str, Any], *, download: bool) -> dict[str, Any]:
        import yt_dlp

        try:
            with yt_dlp.YoutubeDL(options) as ydl:
                info = ydl.extract_info(self.url, download=download)
                info = ydl.sanitize_info(info) if info else None
        except yt_dlp.utils.DownloadError as exc:
            raise SourceUnavailable(f"yt-dlp failed for {self.url}: {exc}") from exc
        if not info:
            raise SourceUnavailable(f"yt-dlp returned no metadata for {self.url}.")
        return info


def _finished_downloads(directory: Path) -> list[Path]:
    return sorted(path for path in directory.glob("media.*") if path.suffix not in {".part", ".ytdl"})


def _find_caption_file(directory: Path, language: str) -> Path | None:
    if not directory.is_dir():
        return None
    for suffix in CAPTION_SUFFIXES:
        matches = sorted(directory.glob(f"*.{language}*{suffix}"))
        if matches:
            return matches[0]
    return None


def open_source(
    location: str,
    *,
    cache_dir: Path,
    settings: SourceSettings | None = None,
    include_comments: bool = True,
    ffprobe_path: str = "ffprobe",
) -> LocalSource | YtDlpSource:
    if is_url(location):
        return YtDlpSource(
            location,
            cache_dir=cache_dir,
            settings=settings,
            include_comments=include_comments,
            ffprobe_path=ffprobe_path,
        )
    return LocalSource(location, ffprobe_path=ffprobe_path)
