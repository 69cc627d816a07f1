from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from clipsmith.models import CaptionEntry, RetimedCaptionEntry, TimeWindow

logger = logging.getLogger(__name__)


def retime_captions(
    captions: Iterable[CaptionEntry] | None,
    windows: Sequence[TimeWindow],
) -> list[RetimedCaptionEntry]:
    """Map source-timeline captions onto the timeline of the clip built from ``windows``.

    Only captions fully inside one window survive; anything straddling a window
    boundary is dropped rather than split. The running offset grows by each
    window's duration whether or not it contained captions.
    """

    entries = sorted(captions or [], key=lambda entry: (entry.start, entry.end))
    retimed: list[RetimedCaptionEntry] = []
    offset = 0.0

    for window in windows:
        for entry in entries:
            if not window.contains(entry.start, entry.end):
                continue
            retimed.append(
                RetimedCaptionEntry(
                    start=round(entry.start - window.start + offset, 3),
                    end=round(entry.end - window.start + offset, 3),
                    text=entry.text,
                )
            )
        offset += window.duration

    dropped = len(entries) - len(retimed)
    if entries and dropped:
        logger.debug("Dropped %d captions outside or across window boundaries.", dropped)
    return retimed
