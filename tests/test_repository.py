import json

import pytest

from conftest import FakeContents, FakePlayer, FakeVideos
from playqueue.controller import PlaybackController
from playqueue.errors import RepositoryError
from playqueue.models import ControllerState, Download, DownloadState, Progression
from playqueue.repository import PlaylistRepository


@pytest.fixture
def library(tmp_path):
    path = tmp_path / "library.json"
    path.write_text(json.dumps({
        "collections": [{"id": 1, "title": "Course", "contents": [11, 12, 13, 14]}],
        "contents": {
            "11": {"id": 11, "video_identifier": 1100, "title": "Intro", "duration": 60},
            "12": {"id": 12, "video_identifier": 1200, "title": "Setup", "duration": 300},
            "13": {"id": 13, "title": "Reading"},
            "14": {"id": 14, "video_identifier": 1400, "title": "Wrap-up", "duration": 90},
            "20": {"id": 20, "video_identifier": 2000, "title": "Standalone"},
        },
        "progressions": {"12": {"elapsed": 40, "finished": False, "proportion": 0.13}},
        "downloads": {"14": {"state": "complete", "local_path": "/videos/14.mp4", "progress": 1.0}},
    }))
    return path


def test_playlist_starts_at_requested_content(library):
    entries = PlaylistRepository(library).playlist(12)
    assert [e.content_id for e in entries] == [12, 13, 14]
    assert entries[0].progression == Progression(content_id=12, elapsed=40, finished=False, proportion=0.13)
    assert entries[1].content.video_identifier is None
    assert entries[2].download.playable_path is not None


def test_content_outside_collections_plays_alone(library):
    entries = PlaylistRepository(library).playlist(20)
    assert [e.content_id for e in entries] == [20]


def test_unknown_content_raises(library):
    with pytest.raises(RepositoryError):
        PlaylistRepository(library).playlist(99)


def test_corrupt_library_raises(tmp_path):
    path = tmp_path / "library.json"
    path.write_text("{ nope")
    with pytest.raises(RepositoryError):
        PlaylistRepository(path).playlist(1)


def test_saved_progression_shows_up_on_next_load(library):
    repo = PlaylistRepository(library)
    repo.save_progression(Progression(content_id=13, elapsed=200, finished=True, proportion=1.0))
    repo.save_download(12, Download(DownloadState.ACTIVE, None, 0.5))

    entries = repo.playlist(11)
    assert entries[2].progression.finished is True
    assert entries[1].download.state is DownloadState.ACTIVE
    assert not library.with_suffix(".tmp").exists()


@pytest.mark.parametrize("patch", [
    {"progressions": {"12": {"elapsed": "n/a"}}},
    {"downloads": {"12": {"state": "complete", "progress": "half"}}},
    {"collections": [{"id": 1, "contents": [11, "twelve"]}]},
    {"contents": {"12": "Setup"}},
    {"progressions": ["12"]},
])
def test_malformed_records_raise_repository_error(library, patch):
    data = json.loads(library.read_text())
    data.update(patch)
    library.write_text(json.dumps(data))
    with pytest.raises(RepositoryError):
        PlaylistRepository(library).playlist(12)


def test_non_object_library_raises(tmp_path):
    path = tmp_path / "library.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(RepositoryError):
        PlaylistRepository(path).load_library()


def test_malformed_library_fails_reload_cleanly(library, errors_log):
    data = json.loads(library.read_text())
    data["progressions"] = {"12": {"elapsed": "n/a"}}
    library.write_text(json.dumps(data))
    ctrl = PlaybackController(
        12,
        repository=PlaylistRepository(library),
        videos=FakeVideos(),
        contents=FakeContents(),
        player=FakePlayer(),
    )

    assert ctrl.reload() is False
    assert ctrl.state is ControllerState.INITIAL
    assert json.loads(errors_log.read_text().splitlines()[-1])["stage"] == "playlist_load"
