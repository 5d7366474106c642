"""Error taxonomy + structured error logging — JSON to errors.log, no terminal formatting."""
import json
import logging
import sys
from datetime import datetime
from typing import Optional

from .config import ERRORS_LOG, OUTPUT_DIR, DEV_MODE

logger = logging.getLogger(__name__)


class PlaybackError(Exception):
    """Base class for every failure the controller handles."""

    kind = "PlaybackError"

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail

    def describe(self) -> str:
        if self.detail:
            return f"{self.kind}::{self.detail}"
        return self.kind


class MissingAttribute(PlaybackError):
    """Entry lacks data needed to build a playable source. Not retryable."""

    kind = "MissingAttribute"

    def __init__(self, field: str):
        super().__init__(field)
        self.field = field


class StreamResolutionError(PlaybackError):
    kind = "StreamResolutionError"


class RepositoryError(PlaybackError):
    kind = "RepositoryError"


class SimultaneousStreamsConflict(PlaybackError):
    """Another session is already streaming on this account."""

    kind = "SimultaneousStreamsConflict"


class OtherProgressError(PlaybackError):
    kind = "OtherProgressError"


_FRIENDLY_MESSAGES = {
    "playlist_load": "Couldn't load the playlist.",
    "enqueue_next": "Couldn't prepare the next video.",
    "progress_update": "Couldn't save your progress — will try again.",
    "simultaneous_streams": "Playback paused: you're already watching somewhere else.",
    "playback_started": "Couldn't register playback start.",
    "preflight": "Startup check failed.",
}


def format_error(
    stage: str,
    reason: str = "",
    component: str = "",
    content_id: Optional[int] = None,
    raw: str = "",
) -> str:
    entry = {
        "timestamp": datetime.now().isoformat(),
        "stage": stage,
        "component": component,
        "content_id": content_id,
        "reason": reason,
        "error": raw,
        "python": sys.version.split()[0],
    }

    _append_to_log(entry)
    logger.error("[%s] %s: %s %s", component or "playqueue", stage, reason, raw)

    if DEV_MODE:
        return json.dumps(entry, indent=2)
    return _FRIENDLY_MESSAGES.get(stage, f"Something went wrong ({stage}).")


def _append_to_log(entry: dict):
    try:
        OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
        with open(ERRORS_LOG, "a") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError:
        pass
