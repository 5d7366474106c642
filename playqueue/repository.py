"""Module 3 — Playlist Repository (local library persistence)

The library is a single JSON document:

    {
      "collections": [{"id": 1, "title": "...", "contents": [11, 12, 13]}],
      "contents":    {"11": {"id": 11, "video_identifier": 9001, "title": "...", "duration": 312}},
      "progressions": {"11": {"elapsed": 40, "finished": false, "proportion": 0.12}},
      "downloads":   {"12": {"state": "complete", "local_path": "/videos/12.mp4", "progress": 1.0}}
    }
"""
import json
import logging
from pathlib import Path
from typing import Optional

from .config import LIBRARY_FILE
from .errors import RepositoryError
from .models import Content, Download, DownloadState, PlaylistEntry, Progression

logger = logging.getLogger(__name__)

_EMPTY_LIBRARY = {
    "collections": [],
    "contents": {},
    "progressions": {},
    "downloads": {},
}


class PlaylistRepository:
    def __init__(self, path: Path = LIBRARY_FILE):
        self.path = Path(path)

    # ── Persistence ────────────────────────────────────────────────────────────

    def load_library(self) -> dict:
        if not self.path.exists():
            return {k: type(v)() for k, v in _EMPTY_LIBRARY.items()}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            raise RepositoryError(f"Unreadable library {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise RepositoryError(f"Library {self.path} is not a JSON object")
        for key, default in _EMPTY_LIBRARY.items():
            data.setdefault(key, type(default)())
            if not isinstance(data[key], type(default)):
                raise RepositoryError(f"Library section {key!r} has the wrong shape")
        return data

    def save_library(self, library: dict):
        """Atomic write — write to tmp then replace."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(library, indent=2))
        tmp.replace(self.path)

    # ── Playlist ───────────────────────────────────────────────────────────────

    def playlist(self, content_id: int) -> list[PlaylistEntry]:
        """Ordered entries starting at content_id and running to the end of its collection."""
        library = self.load_library()
        contents = library["contents"]
        if str(content_id) not in contents:
            raise RepositoryError(f"Unknown content {content_id}")

        ordered_ids = [content_id]
        for collection in library["collections"]:
            try:
                ids = [int(i) for i in collection.get("contents", [])]
            except (AttributeError, TypeError, ValueError) as e:
                raise RepositoryError(f"Malformed collection {collection!r}: {e}") from e
            if content_id in ids:
                ordered_ids = ids[ids.index(content_id):]
                break

        entries = []
        for cid in ordered_ids:
            raw = contents.get(str(cid))
            if raw is None:
                logger.warning("Collection references missing content %s — skipped", cid)
                continue
            entries.append(PlaylistEntry(
                content=_content_from_dict(raw),
                progression=_progression_from_dict(cid, library["progressions"].get(str(cid))),
                download=_download_from_dict(library["downloads"].get(str(cid))),
            ))
        return entries

    # ── Updates ────────────────────────────────────────────────────────────────

    def save_progression(self, progression: Progression):
        library = self.load_library()
        library["progressions"][str(progression.content_id)] = {
            "elapsed": progression.elapsed,
            "finished": progression.finished,
            "proportion": progression.proportion,
        }
        self.save_library(library)

    def save_download(self, content_id: int, download: Optional[Download]):
        library = self.load_library()
        if download is None:
            library["downloads"].pop(str(content_id), None)
        else:
            library["downloads"][str(content_id)] = {
                "state": download.state.value,
                "local_path": str(download.local_path) if download.local_path else None,
                "progress": download.progress,
            }
        self.save_library(library)


def _content_from_dict(raw: dict) -> Content:
    try:
        video_id = raw.get("video_identifier")
        duration = raw.get("duration")
        return Content(
            id=int(raw["id"]),
            video_identifier=int(video_id) if video_id is not None else None,
            title=raw.get("title", ""),
            duration=float(duration) if duration is not None else None,
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise RepositoryError(f"Malformed content record {raw!r}: {e}") from e


def _progression_from_dict(content_id: int, raw: Optional[dict]) -> Optional[Progression]:
    if not raw:
        return None
    try:
        return Progression(
            content_id=content_id,
            elapsed=int(raw.get("elapsed", 0)),
            finished=bool(raw.get("finished", False)),
            proportion=float(raw.get("proportion", 0.0)),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise RepositoryError(f"Malformed progression for {content_id}: {e}") from e


def _download_from_dict(raw: Optional[dict]) -> Optional[Download]:
    if not raw:
        return None
    if not isinstance(raw, dict):
        raise RepositoryError(f"Malformed download record {raw!r}")
    try:
        state = DownloadState(raw.get("state", "queued"))
    except (TypeError, ValueError):
        logger.warning("Unknown download state %r — ignored", raw.get("state"))
        return None
    local_path = raw.get("local_path")
    try:
        return Download(
            state=state,
            local_path=Path(local_path) if local_path else None,
            progress=float(raw.get("progress", 0.0)),
        )
    except (TypeError, ValueError) as e:
        raise RepositoryError(f"Malformed download record {raw!r}: {e}") from e
