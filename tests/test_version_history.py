"""Tests for VersionHistory: snapshots, cursor navigation and persistence."""

import pytest

from core.history import VersionHistory, content_fingerprint, relative_time
from storage.providers.memory import InMemorySnapshotRepo


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def _history(max_snapshots=50, **kwargs):
    return VersionHistory(max_snapshots, clock=FakeClock(), **kwargs)


def test_empty_history():
    history = _history()
    assert history.current_index == -1
    assert history.current_snapshot() is None
    assert not history.can_undo()
    assert not history.can_redo()
    assert history.undo() is None
    assert history.redo() is None
    assert history.list_snapshots() == []


def test_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        VersionHistory(0)


def test_auto_snapshot_skips_empty_and_unchanged_files():
    history = _history()
    assert history.add_snapshot({}, "empty") is None

    first = history.add_snapshot({"a.txt": "1"}, "first")
    assert first is not None
    assert first.id.startswith("snap_")
    assert history.add_snapshot({"a.txt": "1"}, "same again") is None
    assert len(history) == 1

    # Manual and generation snapshots are always recorded
    assert history.add_snapshot({"a.txt": "1"}, "pinned", "manual") is not None
    assert history.add_snapshot({}, "generation", "generation") is not None
    assert len(history) == 3


def test_undo_redo_round_trip():
    history = _history()
    history.add_snapshot({"a": "1"}, "v1")
    history.add_snapshot({"a": "2"}, "v2")
    history.add_snapshot({"a": "3"}, "v3")

    assert history.undo() == {"a": "2"}
    assert history.undo() == {"a": "1"}
    assert history.undo() is None
    assert history.current_index == 0

    assert history.redo() == {"a": "2"}
    assert history.redo() == {"a": "3"}
    assert history.redo() is None


def test_returned_files_are_copies():
    history = _history()
    history.add_snapshot({"a": "1"}, "v1")
    history.add_snapshot({"a": "2"}, "v2")
    files = history.undo()
    files["a"] = "mutated"
    assert history.current_snapshot().files == {"a": "1"}


def test_snapshot_files_are_frozen():
    history = _history()
    source = {"a": "1"}
    snapshot = history.add_snapshot(source, "v1")

    source["a"] = "changed"
    source["b"] = "added"
    assert snapshot.files == {"a": "1"}

    with pytest.raises(TypeError):
        snapshot.files["a"] = "x"
    assert history.current_snapshot().files == {"a": "1"}
    assert history.current_snapshot().to_row("p").files == {"a": "1"}


def test_new_snapshot_discards_redo_branch():
    repo = InMemorySnapshotRepo()
    history = _history(project_id="p", sink=repo)
    history.add_snapshot({"a": "1"}, "v1")
    v2 = history.add_snapshot({"a": "2"}, "v2")
    history.undo()

    history.add_snapshot({"a": "branch"}, "branch")
    assert [s.description for s in history.snapshots] == ["v1", "branch"]
    assert not history.can_redo()
    assert v2.id not in [row.id for row in repo.list("p")]


def test_auto_snapshot_compares_against_cursor_not_tail():
    history = _history()
    history.add_snapshot({"a": "1"}, "v1")
    history.add_snapshot({"a": "2"}, "v2")
    history.undo()
    # Same as the tail but different from the cursor, so it is recorded
    assert history.add_snapshot({"a": "2"}, "again") is not None
    assert [s.description for s in history.snapshots] == ["v1", "again"]


def test_eviction_keeps_newest_and_mirrors_sink():
    repo = InMemorySnapshotRepo()
    history = _history(max_snapshots=3, project_id="p", sink=repo)
    for i in range(5):
        history.add_snapshot({"a": str(i)}, f"v{i}")

    assert [s.description for s in history.snapshots] == ["v2", "v3", "v4"]
    assert history.current_index == 2
    assert [row.description for row in repo.list("p")] == ["v2", "v3", "v4"]


def test_go_to_ignores_out_of_range():
    history = _history()
    history.add_snapshot({"a": "1"}, "v1")
    history.add_snapshot({"a": "2"}, "v2")

    assert history.go_to(5) is None
    assert history.go_to(-1) is None
    assert history.current_index == 1
    assert history.go_to(0) == {"a": "1"}
    assert history.current_index == 0


def test_list_snapshots_summaries():
    clock = FakeClock()
    history = VersionHistory(10, clock=clock)
    history.add_snapshot({"a": "1", "b": "2"}, "first")
    clock.now += 300
    history.add_snapshot({"a": "3"}, "second", "manual")

    listing = history.list_snapshots()
    assert [item["index"] for item in listing] == [0, 1]
    assert listing[0]["file_count"] == 2
    assert listing[0]["relative_time"] == "5 mins ago"
    assert listing[0]["can_restore"] is True
    assert listing[1]["is_current"] is True
    assert listing[1]["kind"] == "manual"
    assert "files" not in listing[1]


def test_clear_empties_history_and_sink():
    repo = InMemorySnapshotRepo()
    history = _history(project_id="p", sink=repo)
    history.add_snapshot({"a": "1"}, "v1")
    history.clear()
    assert len(history) == 0
    assert history.current_index == -1
    assert repo.list("p") == []


def test_load_restores_snapshots_with_cursor_on_newest():
    repo = InMemorySnapshotRepo()
    history = _history(project_id="p", sink=repo)
    history.add_snapshot({"a": "1"}, "v1")
    history.add_snapshot({"a": "2"}, "v2")

    restored = VersionHistory.load(repo, "p", max_snapshots=10)
    assert [s.description for s in restored.snapshots] == ["v1", "v2"]
    assert restored.current_index == 1
    assert restored.undo() == {"a": "1"}


def test_relative_time_buckets():
    assert relative_time(5) == "just now"
    assert relative_time(90) == "1 min ago"
    assert relative_time(600) == "10 mins ago"
    assert relative_time(3700) == "1 hour ago"
    assert relative_time(3 * 3600) == "3 hours ago"
    assert relative_time(2 * 86400) == "2 days ago"


def test_fingerprint_ignores_insertion_order():
    assert content_fingerprint({"a": "1", "b": "2"}) == content_fingerprint({"b": "2", "a": "1"})
    assert content_fingerprint({"a": "1"}) != content_fingerprint({"a": "2"})
