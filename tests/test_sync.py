import asyncio
import json

from conftest import FakeContents, FakePlayer, FakeRepository, FakeVideos
from playqueue.controller import PlaybackController
from playqueue.errors import OtherProgressError, SimultaneousStreamsConflict
from playqueue.models import ControllerState, Progression


def _loaded(entries, contents, repository=None):
    player = FakePlayer()
    ctrl = PlaybackController(
        1,
        repository=repository or FakeRepository(entries),
        videos=FakeVideos(),
        contents=contents,
        player=player,
    )
    return ctrl, player


def test_sample_pushes_elapsed_for_cursor_entry(playlist):
    async def scenario():
        contents = FakeContents()
        ctrl, player = _loaded(playlist, contents)
        ctrl.reload()
        await ctrl.wait_idle()

        player.fire_time(5.4)
        await ctrl.wait_idle()
        assert contents.updates == [(2, 5)]

    asyncio.run(scenario())


def test_returned_progression_is_merged_and_persisted(playlist):
    async def scenario():
        contents = FakeContents()
        contents.responses[2] = Progression(content_id=2, elapsed=60, finished=True, proportion=1.0)
        repo = FakeRepository(playlist)
        ctrl, player = _loaded(playlist, contents, repository=repo)
        ctrl.reload()
        await ctrl.wait_idle()

        player.fire_time(60)
        await ctrl.wait_idle()

        entry = ctrl.store.entry_at(1)
        assert entry.progression.finished is True
        assert entry.progression.proportion == 1.0
        assert repo.saved == [contents.responses[2]]
        # Finishing an item never moves the cursor on its own
        assert ctrl.store.cursor == 1
        assert ctrl.state is ControllerState.HAS_DATA
        assert ctrl.events.events("progress")[-1]["finished"] is True

    asyncio.run(scenario())


def test_stale_progression_leaves_snapshot_alone(playlist):
    async def scenario():
        contents = FakeContents()
        contents.responses[2] = Progression(content_id=999, elapsed=60, finished=True, proportion=1.0)
        repo = FakeRepository(playlist)
        ctrl, player = _loaded(playlist, contents, repository=repo)
        ctrl.reload()
        await ctrl.wait_idle()
        before = ctrl.store.entries

        player.fire_time(10)
        await ctrl.wait_idle()
        assert ctrl.store.entries == before
        assert repo.saved == []

    asyncio.run(scenario())


def test_conflict_pauses_once_per_occurrence(playlist, errors_log):
    async def scenario():
        contents = FakeContents()
        contents.responses[2] = SimultaneousStreamsConflict("content 2")
        ctrl, player = _loaded(playlist, contents)
        ctrl.reload()
        await ctrl.wait_idle()

        player.fire_time(5)
        await ctrl.wait_idle()
        assert player.pause_count == 1

        player.fire_time(10)
        await ctrl.wait_idle()
        assert player.pause_count == 2
        assert len(ctrl.events.events("conflict")) == 2

    asyncio.run(scenario())
    records = [json.loads(line) for line in errors_log.read_text().splitlines()]
    assert [r["stage"] for r in records] == ["simultaneous_streams", "simultaneous_streams"]
    assert records[0]["error"] == "SimultaneousStreamsConflict::content 2"


def test_other_progress_errors_only_log(playlist, errors_log):
    async def scenario():
        contents = FakeContents()
        contents.responses[2] = OtherProgressError("HTTP 500")
        ctrl, player = _loaded(playlist, contents)
        ctrl.reload()
        await ctrl.wait_idle()

        player.fire_time(5)
        await ctrl.wait_idle()
        assert player.pause_count == 0
        assert ctrl.state is ControllerState.HAS_DATA
        assert ctrl.store.entry_at(1).progression is None

    asyncio.run(scenario())
    record = json.loads(errors_log.read_text())
    assert record["stage"] == "progress_update"
    assert record["component"] == "ProgressSynchronizer"


def test_playback_started_fires_once_per_item(playlist):
    async def scenario():
        contents = FakeContents()
        ctrl, player = _loaded(playlist, contents)
        ctrl.reload()
        await ctrl.wait_idle()
        first = player.current_item

        player.notify(first)
        player.notify(first)
        await ctrl.wait_idle()
        assert contents.started == [1]

        player.finish_current()
        player.notify(player.current_item)
        await ctrl.wait_idle()
        assert contents.started == [1, 2]

    asyncio.run(scenario())


def test_conflict_on_playback_start_pauses(playlist):
    async def scenario():
        contents = FakeContents()
        contents.start_error = SimultaneousStreamsConflict("start")
        ctrl, player = _loaded(playlist, contents)
        ctrl.reload()
        await ctrl.wait_idle()
        assert player.pause_count == 1

    asyncio.run(scenario())


def test_progress_arriving_after_release_is_dropped(playlist):
    async def scenario():
        contents = FakeContents()
        contents.responses[2] = SimultaneousStreamsConflict("late")
        ctrl, player = _loaded(playlist, contents)
        ctrl.reload()
        await ctrl.wait_idle()

        player.fire_time(5)
        ctrl.release()
        await ctrl.wait_idle()
        assert player.pause_count == 0
        assert ctrl.events.events("conflict") == []

    asyncio.run(scenario())
