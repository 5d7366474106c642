import json

from playqueue import errors
from playqueue.errors import MissingAttribute, SimultaneousStreamsConflict, StreamResolutionError


def test_describe_renders_kind_and_detail():
    assert MissingAttribute("Not A Stream").describe() == "MissingAttribute::Not A Stream"
    assert StreamResolutionError().describe() == "StreamResolutionError"
    assert SimultaneousStreamsConflict("content 4").describe() == "SimultaneousStreamsConflict::content 4"


def test_format_error_appends_json_line(errors_log, monkeypatch):
    monkeypatch.setattr(errors, "DEV_MODE", False)
    msg = errors.format_error("progress_update", "Error updating progress", "ProgressSynchronizer", 4, "boom")
    errors.format_error("playlist_load", raw="gone")

    assert msg == "Couldn't save your progress — will try again."
    lines = [json.loads(line) for line in errors_log.read_text().splitlines()]
    assert [entry["stage"] for entry in lines] == ["progress_update", "playlist_load"]
    assert lines[0]["content_id"] == 4
    assert lines[0]["error"] == "boom"


def test_format_error_dev_mode_returns_raw_entry(monkeypatch):
    monkeypatch.setattr(errors, "DEV_MODE", True)
    entry = json.loads(errors.format_error("enqueue_next", raw="MissingAttribute::videoIdentifier"))
    assert entry["stage"] == "enqueue_next"
    assert entry["error"] == "MissingAttribute::videoIdentifier"
