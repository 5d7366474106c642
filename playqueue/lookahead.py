"""Module 9 — Lookahead Queue Manager

Keeps the player queue at "current item + at most one resolved successor".
Owns the ControllerState machine:

    initial ──reload──▶ loading ──▶ loadingAdditional ──ok──▶ hasData
                                            │                   │
                                            └──error──▶ failed  └─near end──▶ loadingAdditional

Any reload() restarts at loading, whatever the prior state.
"""
import asyncio
import logging
from typing import Optional

from .config import LOOKAHEAD_THRESHOLD
from .errors import PlaybackError, StreamResolutionError, format_error
from .models import ControllerState, OwnerHandle, PlaylistEntry
from .store import PlaylistStore

logger = logging.getLogger(__name__)

_BUSY = (ControllerState.LOADING, ControllerState.LOADING_ADDITIONAL)


class LookaheadQueue:
    def __init__(
        self,
        store: PlaylistStore,
        resolver,
        player,
        handle: OwnerHandle,
        events=None,
        threshold: float = LOOKAHEAD_THRESHOLD,
    ):
        self.store = store
        self.resolver = resolver
        self.player = player
        self.handle = handle
        self.events = events
        self.threshold = threshold

        self.state = ControllerState.INITIAL
        self._session = 0
        self._seeded = False
        self._task: Optional[asyncio.Task] = None

    @property
    def in_flight(self) -> Optional[asyncio.Task]:
        """The pending resolve task, if any."""
        if self._task is None or self._task.done():
            return None
        return self._task

    async def wait_idle(self):
        # A completed first enqueue may chain the successor's resolve
        while self.in_flight is not None:
            await self.in_flight

    # ── Session ────────────────────────────────────────────────────────────────

    def begin_session(self):
        """Start a fresh loading cycle against the store's new snapshot."""
        self._session += 1
        self._seeded = False
        self._set_state(ControllerState.LOADING)
        if not self._enqueue_next():
            # Empty playlist — nothing to resolve
            self._set_state(ControllerState.HAS_DATA)

    # ── Triggers ───────────────────────────────────────────────────────────────

    def trigger(self) -> bool:
        """Enqueue the next entry if policy allows. Returns True when a resolve was started."""
        if self.state is not ControllerState.HAS_DATA:
            return False
        current = self.player.current_item
        if current is not None and self.player.last_item is not current:
            return False    # successor already queued
        return self._enqueue_next()

    def on_time_sample(self, elapsed: float) -> bool:
        """Near-end-of-item check, run on every periodic sample."""
        if self.state in _BUSY:
            return False
        current = self.player.current_item
        if current is None:
            return self.trigger()
        if self.player.last_item is not current:
            return False
        duration = self.player.current_duration
        if duration is None:
            return False
        if duration - elapsed < self.threshold:
            return self.trigger()
        return False

    # ── Enqueue ────────────────────────────────────────────────────────────────

    def _next_index(self) -> int:
        # The cursor marks the most recently enqueued entry; before the first
        # enqueue of a session it marks the entry about to be enqueued.
        return self.store.cursor + 1 if self._seeded else self.store.cursor

    def _enqueue_next(self) -> bool:
        index = self._next_index()
        entry = self.store.entry_at(index)
        if entry is None:
            return False

        self._set_state(ControllerState.LOADING_ADDITIONAL)
        self._task = asyncio.create_task(self._resolve_and_enqueue(entry, self._session))
        return True

    async def _resolve_and_enqueue(self, entry: PlaylistEntry, session: int):
        try:
            item = await self.resolver.resolve(entry)
        except PlaybackError as e:
            self._fail(entry, e, session)
            return
        except Exception as e:
            logger.exception("Unexpected error resolving %s", entry.content_id)
            self._fail(entry, StreamResolutionError(str(e)), session)
            return

        if not self._is_live(session):
            logger.debug("Dropping resolved item %s — session gone", entry.content_id)
            return

        self.player.insert(item)
        first = not self._seeded
        if first:
            self._seeded = True
        else:
            self.store.advance()
        self._set_state(ControllerState.HAS_DATA)
        self._publish("enqueued", {
            "content_id": item.content_id,
            "cursor": self.store.cursor,
            "local": item.local,
            "queue": [i.content_id for i in self.player.items()],
        })

        if first:
            # Seed the successor straight away so the queue starts as [first, second]
            self.trigger()

    def _fail(self, entry: PlaylistEntry, error: PlaybackError, session: int):
        if not self._is_live(session):
            return
        self._set_state(ControllerState.FAILED)
        format_error(
            stage="enqueue_next",
            reason="Unable to enqueue next playlist item",
            component=type(self).__name__,
            content_id=entry.content_id,
            raw=error.describe(),
        )
        self._publish("error", {"stage": "enqueue_next", "content_id": entry.content_id, "error": error.describe()})

    # ── Helpers ────────────────────────────────────────────────────────────────

    def _is_live(self, session: int) -> bool:
        return self.handle.alive and session == self._session

    def _set_state(self, state: ControllerState):
        if state is self.state:
            return
        logger.debug("State %s → %s", self.state.value, state.value)
        self.state = state
        self._publish("state", {"state": state.value, "cursor": self.store.cursor})

    def _publish(self, event: str, data: dict):
        if self.events is not None:
            self.events.publish(event, data)
