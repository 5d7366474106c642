"""Module 8 — Queue Player: gapless sequential playback on a media clock

Items play back to back. Elapsed time is tracked on a monotonic clock
(accounting for pauses); when it passes the current item's duration the
next queued item becomes current. An optional external command (ffplay,
mpv, ...) renders the current URL; it is suspended with SIGSTOP while paused.
"""
import asyncio
import logging
import os
import shlex
import signal
import subprocess
import time
from typing import Callable, Optional

from .config import PLAYER_COMMAND, PLAYER_TICK
from .models import PlayerItem

logger = logging.getLogger(__name__)


class QueuePlayer:
    def __init__(
        self,
        command: str = PLAYER_COMMAND,
        tick: float = PLAYER_TICK,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._command = shlex.split(command) if command else []
        self._tick = tick
        self._clock = clock
        self._items: list[PlayerItem] = []
        self._proc: Optional[subprocess.Popen] = None
        self._playing: bool = False
        self._paused: bool = False
        self._play_start: float = 0.0
        self._paused_at: float = 0.0
        self._total_paused: float = 0.0

        self._next_token = 0
        # token -> [interval, callback, last fired boundary]
        self._time_observers: dict[int, list] = {}
        self._item_observers: list[Callable[[Optional[PlayerItem]], None]] = []
        self._clock_task: Optional[asyncio.Task] = None

    # ── Queue ──────────────────────────────────────────────────────────────────

    def insert(self, item: PlayerItem, after: Optional[PlayerItem] = None):
        """Queue an item. after=None appends to the tail."""
        if after is None or after not in self._items:
            self._items.append(item)
        else:
            self._items.insert(self._items.index(after) + 1, item)
        if len(self._items) == 1:
            self._start_current()
            self._notify_current()

    def items(self) -> list[PlayerItem]:
        return list(self._items)

    @property
    def current_item(self) -> Optional[PlayerItem]:
        return self._items[0] if self._items else None

    @property
    def last_item(self) -> Optional[PlayerItem]:
        return self._items[-1] if self._items else None

    def remove_all_items(self):
        had_items = bool(self._items)
        self._kill_proc()
        self._items.clear()
        self._reset_clock()
        if had_items:
            self._notify_current()

    def advance_to_next_item(self):
        """Drop the current item; the next one (if any) starts immediately."""
        if not self._items:
            return
        self._kill_proc()
        self._items.pop(0)
        self._start_current()
        self._notify_current()

    # ── Playback ───────────────────────────────────────────────────────────────

    def play(self):
        """Start (or resume) playback and the media clock."""
        if self._paused:
            self.resume()
            return
        if self._playing:
            return
        self._playing = True
        self._start_current()
        if self._clock_task is None or self._clock_task.done():
            self._clock_task = asyncio.create_task(self._clock_loop())

    def pause(self):
        """Freeze the media clock and suspend the output process. Position is preserved."""
        if not self._playing or self._paused:
            return
        self._paused = True
        self._paused_at = self._clock()
        if self._proc and self._proc.poll() is None:
            try:
                os.kill(self._proc.pid, signal.SIGSTOP)
            except ProcessLookupError:
                pass

    def resume(self):
        if not self._paused:
            return
        if self._proc and self._proc.poll() is None:
            try:
                os.kill(self._proc.pid, signal.SIGCONT)
            except ProcessLookupError:
                pass
        if self._paused_at > 0:
            self._total_paused += self._clock() - self._paused_at
            self._paused_at = 0.0
        self._paused = False

    def stop(self):
        """Stop playback, drop the queue and cancel the media clock."""
        self._playing = False
        self._paused = False
        if self._clock_task and not self._clock_task.done():
            self._clock_task.cancel()
        self._clock_task = None
        self.remove_all_items()

    def is_playing(self) -> bool:
        return self._playing and not self._paused and self.current_item is not None

    def is_paused(self) -> bool:
        return self._paused

    @property
    def elapsed(self) -> float:
        """Seconds into the current item, accounting for pauses."""
        if not self._playing or self._play_start == 0 or self.current_item is None:
            return 0.0
        if self._paused and self._paused_at > 0:
            return self._paused_at - self._play_start - self._total_paused
        return self._clock() - self._play_start - self._total_paused

    @property
    def current_duration(self) -> Optional[float]:
        item = self.current_item
        return item.duration if item else None

    # ── Observers ──────────────────────────────────────────────────────────────

    def add_periodic_time_observer(self, interval: float, callback: Callable[[float], None]) -> int:
        """Call callback(elapsed) every `interval` seconds of media time. Returns a removal token."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._next_token += 1
        self._time_observers[self._next_token] = [interval, callback, 0]
        return self._next_token

    def remove_time_observer(self, token: int):
        if token not in self._time_observers:
            raise ValueError(f"time observer {token} is not registered")
        del self._time_observers[token]

    def add_current_item_observer(self, callback: Callable[[Optional[PlayerItem]], None]):
        self._item_observers.append(callback)

    def remove_current_item_observer(self, callback: Callable[[Optional[PlayerItem]], None]):
        if callback in self._item_observers:
            self._item_observers.remove(callback)

    # ── Media clock ────────────────────────────────────────────────────────────

    def tick(self):
        """Advance the media clock once: roll over finished items, fire due observers."""
        if not self._playing or self._paused or self.current_item is None:
            return
        elapsed = self.elapsed
        duration = self.current_duration
        if duration is not None and elapsed >= duration:
            self.advance_to_next_item()
            return
        for token, observer in list(self._time_observers.items()):
            interval, callback, last = observer
            boundary = int(elapsed // interval)
            if boundary > last:
                observer[2] = boundary
                try:
                    callback(elapsed)
                except Exception:
                    logger.exception("Time observer %s failed", token)

    async def _clock_loop(self):
        while self._playing:
            await asyncio.sleep(self._tick)
            self.tick()

    def _reset_clock(self):
        self._play_start = self._clock() if self._items else 0.0
        self._paused_at = self._clock() if (self._paused and self._items) else 0.0
        self._total_paused = 0.0
        for observer in self._time_observers.values():
            observer[2] = 0

    def _start_current(self):
        self._reset_clock()
        item = self.current_item
        if item is None or not self._playing or not self._command:
            return
        if self._proc and self._proc.poll() is None:
            return
        try:
            self._proc = subprocess.Popen(
                self._command + [item.url],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error("Could not start %s: %s", self._command[0], e)
            self._proc = None
            return
        if self._paused:
            try:
                os.kill(self._proc.pid, signal.SIGSTOP)
            except ProcessLookupError:
                pass

    def _kill_proc(self):
        if self._proc and self._proc.poll() is None:
            if self._paused:
                # Must resume before terminate — SIGSTOP blocks SIGTERM
                try:
                    os.kill(self._proc.pid, signal.SIGCONT)
                except ProcessLookupError:
                    pass
            self._proc.terminate()
            try:
                self._proc.wait(timeout=2)
            except subprocess.TimeoutExpired:
                self._proc.kill()
        self._proc = None

    def _notify_current(self):
        item = self.current_item
        for callback in list(self._item_observers):
            try:
                callback(item)
            except Exception:
                logger.exception("Current-item observer failed")
