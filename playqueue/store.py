"""Module 4 — Playlist Store: ordered snapshot of per-item playback state + cursor."""
import logging
from typing import Optional

from .models import Download, PlaylistEntry, Progression

logger = logging.getLogger(__name__)


class PlaylistStore:
    def __init__(self):
        self._entries: list[PlaylistEntry] = []
        self._cursor: int = 0

    # ── Snapshot ───────────────────────────────────────────────────────────────

    def load(self, repository, content_id: int) -> list[PlaylistEntry]:
        """Replace the snapshot with a fresh playlist. Cursor resets to 0.

        Raises RepositoryError; the previous snapshot survives a failed load.
        """
        entries = list(repository.playlist(content_id))
        self._entries = entries
        self._cursor = 0
        logger.info("Loaded playlist of %d entries starting at %s", len(entries), content_id)
        return entries

    @property
    def entries(self) -> list[PlaylistEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> Optional[PlaylistEntry]:
        if not self._entries:
            return None
        return self._entries[self._cursor]

    def entry_at(self, index: int) -> Optional[PlaylistEntry]:
        if 0 <= index < len(self._entries):
            return self._entries[index]
        return None

    @property
    def at_end(self) -> bool:
        """True when the cursor sits on the final entry (or there are none)."""
        return self._cursor >= len(self._entries) - 1

    def advance(self):
        """Move the cursor forward by one. Never moves past the final entry."""
        if self._cursor + 1 >= len(self._entries):
            raise IndexError(f"cursor {self._cursor} already at end of {len(self._entries)} entries")
        self._cursor += 1

    # ── In-place merges ────────────────────────────────────────────────────────

    def index_of(self, content_id: int) -> Optional[int]:
        for i, entry in enumerate(self._entries):
            if entry.content_id == content_id:
                return i
        return None

    def replace_progression(self, progression: Progression) -> bool:
        """Swap in a new progression for the matching entry. Stale ids are ignored."""
        index = self.index_of(progression.content_id)
        if index is None:
            logger.debug("Dropping progression for %s — not in snapshot", progression.content_id)
            return False
        self._entries[index] = self._entries[index].with_progression(progression)
        return True

    def replace_download(self, content_id: int, download: Optional[Download]) -> bool:
        index = self.index_of(content_id)
        if index is None:
            return False
        self._entries[index] = self._entries[index].with_download(download)
        return True
