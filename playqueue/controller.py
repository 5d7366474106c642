"""Core playback controller — wires store, resolver, lookahead and progress sync.

Single logical owner: every mutation of snapshot, cursor and state runs on
the event loop. Callers serialize reload()/release() themselves.
"""
import logging
from typing import Optional

from .config import LOOKAHEAD_THRESHOLD, SAMPLE_INTERVAL
from .errors import PlaybackError, RepositoryError, format_error
from .lookahead import LookaheadQueue
from .models import ControllerState, Download, OwnerHandle, PlayerItem
from .player import QueuePlayer
from .resolver import ItemResolver
from .store import PlaylistStore
from .sync import ProgressSynchronizer
from .web.state import PlaybackEvents

logger = logging.getLogger(__name__)


class PlaybackController:
    def __init__(
        self,
        content_id: int,
        repository,
        videos,
        contents,
        player=None,
        events: Optional[PlaybackEvents] = None,
        sample_interval: float = SAMPLE_INTERVAL,
        threshold: float = LOOKAHEAD_THRESHOLD,
    ):
        self.initial_content_id = content_id
        self.repository = repository
        self.player = player if player is not None else QueuePlayer()
        self.events = events if events is not None else PlaybackEvents()
        self.sample_interval = sample_interval

        self._handle = OwnerHandle()
        self.store = PlaylistStore()
        self.resolver = ItemResolver(videos)
        self.lookahead = LookaheadQueue(
            self.store, self.resolver, self.player, self._handle,
            events=self.events, threshold=threshold,
        )
        self.synchronizer = ProgressSynchronizer(
            self.store, self.player, contents, self._handle,
            repository=repository, events=self.events,
        )

        self._time_observer_token: Optional[int] = None
        self._released = False
        self._reloading = False

    # ── Public API ───────────────────────────────────────────────────────────

    @property
    def state(self) -> ControllerState:
        return self.lookahead.state

    @property
    def released(self) -> bool:
        return self._released

    def reload_if_required(self) -> bool:
        if self.state is not ControllerState.INITIAL:
            return False
        return self.reload()

    def reload(self) -> bool:
        """Load a fresh playlist and seed the player queue. Returns False if the load failed."""
        if self._released:
            logger.warning("reload() on a released controller ignored")
            return False
        try:
            self.store.load(self.repository, self.initial_content_id)
        except RepositoryError as e:
            format_error(
                stage="playlist_load",
                reason="Unable to load playlist",
                component=type(self).__name__,
                content_id=self.initial_content_id,
                raw=e.describe(),
            )
            return False

        if self.player.items():
            self._reloading = True
            try:
                self.player.remove_all_items()
            finally:
                self._reloading = False
        self._prepare_subscribers()
        self.lookahead.begin_session()
        return True

    def update_download(self, content_id: int, download: Optional[Download]) -> bool:
        """Merge a download change into the snapshot and persist it. Unknown ids are a no-op."""
        if not self.store.replace_download(content_id, download):
            return False
        try:
            self.repository.save_download(content_id, download)
        except (OSError, PlaybackError) as e:
            logger.warning("Could not persist download for %s: %s", content_id, e)
        self.events.publish("download", {
            "content_id": content_id,
            "state": download.state.value if download else None,
            "progress": download.progress if download else 0.0,
        })
        return True

    def play(self):
        self.player.play()

    def pause(self):
        self.player.pause()

    def resume(self):
        self.player.resume()

    def release(self):
        """Tear down: drop the periodic observer exactly once and orphan in-flight work."""
        if self._released:
            return
        self._released = True
        self._handle.invalidate()
        if self._time_observer_token is not None:
            self.player.remove_time_observer(self._time_observer_token)
            self._time_observer_token = None
            self.player.remove_current_item_observer(self._handle_current_item)
        logger.info("Controller for %s released", self.initial_content_id)

    def stop(self):
        """Release, then halt playback and empty the queue."""
        self.release()
        self.player.stop()

    async def wait_idle(self):
        """Await outstanding resolve/progress work (shutdown and tests)."""
        await self.lookahead.wait_idle()
        await self.synchronizer.drain()

    def get_snapshot(self) -> dict:
        """Full state snapshot for initial WebSocket sync."""
        current = self.player.current_item
        return {
            "content_id": self.initial_content_id,
            "state": self.state.value,
            "cursor": self.store.cursor,
            "entries": [
                {
                    "content_id": e.content_id,
                    "title": e.content.title,
                    "finished": bool(e.progression and e.progression.finished),
                    "proportion": e.progression.proportion if e.progression else 0.0,
                    "downloaded": bool(e.download and e.download.playable_path),
                }
                for e in self.store.entries
            ],
            "queue": [i.content_id for i in self.player.items()],
            "now_playing": current.content_id if current else None,
            "playback": {
                "playing": self.player.is_playing(),
                "paused": self.player.is_paused(),
                "elapsed": round(self.player.elapsed, 1),
                "duration": self.player.current_duration,
            },
        }

    # ── Subscriptions ────────────────────────────────────────────────────────

    def _prepare_subscribers(self):
        if self._time_observer_token is not None:
            return
        self._time_observer_token = self.player.add_periodic_time_observer(
            self.sample_interval, self._handle_time_update,
        )
        self.player.add_current_item_observer(self._handle_current_item)

    def _handle_time_update(self, elapsed: float):
        if not self._handle.alive:
            return
        self.synchronizer.on_time_sample(elapsed)
        self.lookahead.on_time_sample(elapsed)

    def _handle_current_item(self, item: Optional[PlayerItem]):
        if not self._handle.alive:
            return
        self.synchronizer.on_current_item_changed(item)
        if item is None and not self._reloading:
            # Queue ran dry — recover by enqueueing the next entry now
            self.lookahead.trigger()
