import asyncio
import sys
from pathlib import Path
from typing import Optional

import pytest

# Ensure the project root is on the path for imports in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from playqueue import errors  # noqa: E402
from playqueue.errors import MissingAttribute, RepositoryError  # noqa: E402
from playqueue.models import Content, PlaylistEntry, Progression, VideoStream  # noqa: E402


@pytest.fixture(autouse=True)
def errors_log(tmp_path, monkeypatch):
    """Send structured error records to a per-test file."""
    log = tmp_path / "errors.log"
    monkeypatch.setattr(errors, "OUTPUT_DIR", tmp_path)
    monkeypatch.setattr(errors, "ERRORS_LOG", log)
    return log


def make_entry(content_id: int, video_identifier: Optional[int] = None, duration: float = 100.0, **kw) -> PlaylistEntry:
    no_video = kw.pop("no_video", False)
    if video_identifier is None and not no_video:
        video_identifier = content_id * 10
    return PlaylistEntry(
        content=Content(id=content_id, video_identifier=video_identifier, title=f"Episode {content_id}", duration=duration),
        **kw,
    )


class FakeRepository:
    def __init__(self, entries=None, error: Optional[Exception] = None):
        self.entries = list(entries or [])
        self.error = error
        self.calls: list[int] = []
        self.saved: list[Progression] = []
        self.downloads: list = []

    def playlist(self, content_id: int):
        self.calls.append(content_id)
        if self.error:
            raise self.error
        return list(self.entries)

    def save_progression(self, progression: Progression):
        self.saved.append(progression)

    def save_download(self, content_id: int, download):
        self.downloads.append((content_id, download))


class FakeVideos:
    """Resolves video ids to streams. Set `gate` to hold completions until released."""

    def __init__(self, kinds: Optional[dict] = None, failures: Optional[dict] = None):
        self.kinds = kinds or {}
        self.failures = failures or {}
        self.calls: list[int] = []
        self.gate: Optional[asyncio.Event] = None

    async def get_video_stream(self, video_identifier: int) -> VideoStream:
        self.calls.append(video_identifier)
        if self.gate is not None:
            await self.gate.wait()
        if video_identifier in self.failures:
            raise self.failures[video_identifier]
        kind = self.kinds.get(video_identifier, "stream")
        return VideoStream(kind=kind, url=f"https://cdn.example.com/{video_identifier}.m3u8")


class FakeContents:
    """Progress service. `responses` maps content id → Progression or exception."""

    def __init__(self):
        self.responses: dict = {}
        self.updates: list[tuple[int, int]] = []
        self.started: list[int] = []
        self.start_error: Optional[Exception] = None

    async def playback_started(self, content_id: int):
        self.started.append(content_id)
        if self.start_error:
            raise self.start_error
        return "token"

    async def update_progress(self, content_id: int, elapsed: int) -> Progression:
        self.updates.append((content_id, elapsed))
        response = self.responses.get(content_id)
        if isinstance(response, Exception):
            raise response
        if response is not None:
            return response
        return Progression(content_id=content_id, elapsed=elapsed, proportion=0.1)


class FakePlayer:
    """In-memory stand-in for QueuePlayer with manual time control."""

    def __init__(self):
        self._items = []
        self.time_observers: dict = {}
        self.item_observers: list = []
        self.pause_count = 0
        self.removed_tokens: list[int] = []
        self.max_queue = 0
        self._token = 0
        self.elapsed = 0.0

    def insert(self, item, after=None):
        self._items.append(item)
        self.max_queue = max(self.max_queue, len(self._items))
        if len(self._items) == 1:
            self.notify(item)

    def items(self):
        return list(self._items)

    @property
    def current_item(self):
        return self._items[0] if self._items else None

    @property
    def last_item(self):
        return self._items[-1] if self._items else None

    @property
    def current_duration(self):
        item = self.current_item
        return item.duration if item else None

    def remove_all_items(self):
        self._items.clear()
        self.notify(None)

    def finish_current(self):
        self._items.pop(0)
        self.notify(self.current_item)

    def notify(self, item):
        for cb in list(self.item_observers):
            cb(item)

    def fire_time(self, elapsed: float):
        self.elapsed = elapsed
        for _, cb in list(self.time_observers.values()):
            cb(elapsed)

    def add_periodic_time_observer(self, interval, callback):
        self._token += 1
        self.time_observers[self._token] = (interval, callback)
        return self._token

    def remove_time_observer(self, token):
        if token not in self.time_observers:
            raise ValueError(f"time observer {token} is not registered")
        del self.time_observers[token]
        self.removed_tokens.append(token)

    def add_current_item_observer(self, callback):
        self.item_observers.append(callback)

    def remove_current_item_observer(self, callback):
        if callback in self.item_observers:
            self.item_observers.remove(callback)

    def pause(self):
        self.pause_count += 1

    def resume(self):
        pass

    def play(self):
        pass

    def stop(self):
        self.remove_all_items()

    def is_playing(self):
        return bool(self._items)

    def is_paused(self):
        return False


@pytest.fixture
def playlist():
    return [make_entry(1), make_entry(2), make_entry(3)]


@pytest.fixture
def missing_video_playlist():
    return [make_entry(1), make_entry(2), make_entry(3, no_video=True)]


__all__ = [
    "FakeRepository",
    "FakeVideos",
    "FakeContents",
    "FakePlayer",
    "make_entry",
    "MissingAttribute",
    "RepositoryError",
]
