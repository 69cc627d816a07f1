from __future__ import annotations

import random
import string
import uuid
from datetime import datetime, timedelta, timezone

from clipsmith.models import ClipMetadata

CREATION_WINDOW_DAYS = 30
_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def generate_metadata(
    *,
    prefix: str = "clip",
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> ClipMetadata:
    """Fresh identifying metadata: unique title, plausible recent creation time, random encoder tag."""

    source = rng or random.SystemRandom()
    reference = now or datetime.now(timezone.utc)
    offset = timedelta(seconds=source.uniform(0, CREATION_WINDOW_DAYS * 86400))

    return ClipMetadata(
        title=f"{prefix}_{uuid.uuid4().hex[:12]}_{_token(source, 9)}",
        creation_time=(reference - offset).replace(microsecond=0),
        encoder=f"custom_{_token(source, 6)}",
        comment=_token(source, 16),
    )


def metadata_args(metadata: ClipMetadata) -> list[str]:
    return [
        "-metadata",
        f"title={metadata.title}",
        "-metadata",
        f"creation_time={metadata.creation_time.strftime('%Y-%m-%dT%H:%M:%S.000000Z')}",
        "-metadata",
        f"encoder={metadata.encoder}",
        "-metadata",
        f"comment={metadata.comment}",
    ]


def _token(source: random.Random, length: int) -> str:
    return "".join(source.choice(_TOKEN_ALPHABET) for _ in range(length))
