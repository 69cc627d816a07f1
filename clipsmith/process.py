from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence

from clipsmith.errors import ClipsmithError

logger = logging.getLogger(__name__)

SHARED_LIBRARY_MARKER = "error while loading shared libraries"
STDERR_TAIL_CHARS = 1200


def run_tool(
    command: Sequence[str],
    *,
    tool: str,
    action: str,
    error_cls: type[ClipsmithError],
    timeout_seconds: float | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run an external media tool, translating every failure mode into ``error_cls``."""

    logger.debug("Running %s: %s", tool, " ".join(command))
    try:
        return subprocess.run(
            list(command),
            check=True,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout_seconds,
        )
    except FileNotFoundError as exc:
        raise error_cls(
            f"{tool} executable was not found. Install FFmpeg so {tool} is available on PATH."
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise error_cls(f"{tool} timed out after {timeout_seconds}s while {action}.") from exc
    except subprocess.CalledProcessError as exc:
        raise error_cls(describe_process_error(tool, action, exc)) from exc


def describe_process_error(tool: str, action: str, exc: subprocess.CalledProcessError) -> str:
    stderr = (exc.stderr or "").strip()
    if SHARED_LIBRARY_MARKER in stderr:
        return (
            f"{tool} is installed but failed to start because required shared libraries are missing. "
            f"{tool} stderr: {stderr}"
        )
    details = f" {tool} stderr: {stderr[-STDERR_TAIL_CHARS:]}" if stderr else ""
    return f"{tool} failed while {action} (exit code {exc.returncode}).{details}"
