"""Module 2 — Playback data model"""
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Optional


class ControllerState(str, Enum):
    INITIAL = "initial"
    LOADING = "loading"
    LOADING_ADDITIONAL = "loadingAdditional"
    HAS_DATA = "hasData"
    FAILED = "failed"


class DownloadState(str, Enum):
    QUEUED = "queued"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Content:
    id: int
    video_identifier: Optional[int] = None
    title: str = ""
    duration: Optional[float] = None     # seconds


@dataclass(frozen=True)
class Progression:
    """Authoritative watch progress, as returned by the tracking service."""
    content_id: int
    elapsed: int = 0
    finished: bool = False
    proportion: float = 0.0               # [0, 1]


@dataclass(frozen=True)
class Download:
    state: DownloadState
    local_path: Optional[Path] = None     # only meaningful once complete
    progress: float = 0.0

    @property
    def playable_path(self) -> Optional[Path]:
        if self.state is DownloadState.COMPLETE and self.local_path is not None:
            return self.local_path
        return None


@dataclass(frozen=True)
class PlaylistEntry:
    content: Content
    progression: Optional[Progression] = None
    download: Optional[Download] = None

    @property
    def content_id(self) -> int:
        return self.content.id

    def with_progression(self, progression: Progression) -> "PlaylistEntry":
        return replace(self, progression=progression)

    def with_download(self, download: Optional[Download]) -> "PlaylistEntry":
        return replace(self, download=download)


@dataclass(frozen=True)
class VideoStream:
    kind: str
    url: str


@dataclass(frozen=True)
class PlayerItem:
    """A resolved, playable reference the player can queue."""
    content_id: int
    url: str
    duration: Optional[float] = None
    local: bool = False
    title: str = ""


class OwnerHandle:
    """Non-owning liveness token shared with in-flight callbacks.

    The controller invalidates it on release; completions check `alive` before
    touching controller state.
    """

    def __init__(self):
        self._alive = True

    @property
    def alive(self) -> bool:
        return self._alive

    def invalidate(self):
        self._alive = False
