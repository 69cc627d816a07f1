from __future__ import annotations


class ClipsmithError(RuntimeError):
    """Base class for pipeline errors surfaced to the operator."""


class DurationUnavailable(ClipsmithError):
    """Total source duration could not be determined; nothing can be planned."""


class PlanningError(ClipsmithError, ValueError):
    """Malformed range input or a window with end <= start."""


class RenderFailure(ClipsmithError):
    """A single transcoder invocation failed or timed out."""


class CaptionUnavailable(ClipsmithError):
    """Neither source captions nor a transcription are available."""


class SourceUnavailable(ClipsmithError):
    """The source media or its metadata could not be acquired."""
