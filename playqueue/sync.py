"""Module 10 — Progress Synchronizer

Turns periodic elapsed-time samples into progress updates on the tracking
service, merges the authoritative progression back into the store, and
pauses the player when the service reports a simultaneous-streams conflict.
"""
import asyncio
import logging
from typing import Optional

from .errors import OtherProgressError, PlaybackError, SimultaneousStreamsConflict, format_error
from .models import OwnerHandle, PlayerItem, Progression
from .store import PlaylistStore

logger = logging.getLogger(__name__)


class ProgressSynchronizer:
    def __init__(
        self,
        store: PlaylistStore,
        player,
        contents,
        handle: OwnerHandle,
        repository=None,
        events=None,
    ):
        self.store = store
        self.player = player
        self.contents = contents
        self.handle = handle
        self.repository = repository
        self.events = events

        self._last_current: Optional[PlayerItem] = None
        self._tasks: set[asyncio.Task] = set()

    # ── Player callbacks ───────────────────────────────────────────────────────

    def on_current_item_changed(self, item: Optional[PlayerItem]):
        """Announce playback start once per item, ignoring repeat notifications."""
        if item is None or item is self._last_current:
            return
        self._last_current = item
        self._publish("now_playing", {"content_id": item.content_id, "title": item.title, "url": item.url})
        self._spawn(self._playback_started(item.content_id))

    def on_time_sample(self, elapsed: float):
        # Reports against the cursor entry (the last one enqueued), not the playing item
        entry = self.store.current
        if entry is None:
            return
        self._spawn(self._push(entry.content_id, int(elapsed)))

    # ── Requests ───────────────────────────────────────────────────────────────

    async def _playback_started(self, content_id: int):
        try:
            await self.contents.playback_started(content_id)
        except SimultaneousStreamsConflict as e:
            self._conflict(content_id, e)
        except PlaybackError as e:
            if self.handle.alive:
                format_error("playback_started", "Error registering playback start",
                             type(self).__name__, content_id, e.describe())
        except Exception:
            logger.exception("Unexpected error registering playback start for %s", content_id)

    async def _push(self, content_id: int, elapsed: int):
        try:
            progression = await self.contents.update_progress(content_id, elapsed)
        except SimultaneousStreamsConflict as e:
            self._conflict(content_id, e)
            return
        except PlaybackError as e:
            if self.handle.alive:
                format_error("progress_update", "Error updating progress",
                             type(self).__name__, content_id, e.describe())
            return
        except Exception as e:
            logger.exception("Unexpected error updating progress for %s", content_id)
            if self.handle.alive:
                format_error("progress_update", "Error updating progress",
                             type(self).__name__, content_id, OtherProgressError(str(e)).describe())
            return

        if not self.handle.alive:
            return
        self.apply(progression)

    def apply(self, progression: Progression) -> bool:
        """Merge a returned progression into the store (stale ids are a no-op)."""
        if not self.store.replace_progression(progression):
            return False
        if self.repository is not None:
            try:
                self.repository.save_progression(progression)
            except (OSError, PlaybackError) as e:
                logger.warning("Could not persist progression for %s: %s", progression.content_id, e)
        self._publish("progress", {
            "content_id": progression.content_id,
            "elapsed": progression.elapsed,
            "finished": progression.finished,
            "proportion": progression.proportion,
        })
        return True

    def _conflict(self, content_id: int, error: SimultaneousStreamsConflict):
        if not self.handle.alive:
            return
        self.player.pause()
        format_error("simultaneous_streams", "Error updating progress",
                     type(self).__name__, content_id, error.describe())
        self._publish("conflict", {"content_id": content_id})

    # ── Helpers ────────────────────────────────────────────────────────────────

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self):
        """Wait for in-flight requests (tests + graceful shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _publish(self, event: str, data: dict):
        if self.events is not None:
            self.events.publish(event, data)
