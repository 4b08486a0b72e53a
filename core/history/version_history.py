"""Version history: bounded snapshot list with an undo/redo cursor.

Snapshots are full copies of the file set, never diffs. Adding a snapshot
discards everything after the cursor (the redo branch), appends, evicts the
oldest entries beyond max_snapshots, and moves the cursor to the tail.
Navigation (undo / redo / go_to) only moves the cursor and hands back a
copy of the files at the new position; callers apply it to their store.
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal

from storage.contracts import SnapshotRepo
from storage.models import SnapshotRow

logger = logging.getLogger(__name__)

SnapshotKind = Literal["auto", "manual", "generation"]


@dataclass(frozen=True)
class VersionSnapshot:
    id: str
    timestamp: float
    description: str
    kind: SnapshotKind
    files: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Read-only view over a private copy
        object.__setattr__(self, "files", MappingProxyType(dict(self.files)))

    def to_row(self, project_id: str) -> SnapshotRow:
        return SnapshotRow(
            id=self.id,
            project_id=project_id,
            timestamp=self.timestamp,
            description=self.description,
            kind=self.kind,
            files=dict(self.files),
        )

    @classmethod
    def from_row(cls, row: SnapshotRow) -> VersionSnapshot:
        return cls(
            id=row.id,
            timestamp=row.timestamp,
            description=row.description,
            kind=row.kind,  # type: ignore[arg-type]
            files=dict(row.files),
        )


def relative_time(seconds: float) -> str:
    """Human-friendly age: "just now", "5 mins ago", "2 hours ago", ..."""
    seconds = int(seconds)
    if seconds < 60:
        return "just now"
    if seconds < 120:
        return "1 min ago"
    if seconds < 3600:
        return f"{seconds // 60} mins ago"
    if seconds < 7200:
        return "1 hour ago"
    if seconds < 86400:
        return f"{seconds // 3600} hours ago"
    return f"{seconds // 86400} days ago"


def content_fingerprint(files: Mapping[str, str]) -> str:
    digest = hashlib.sha256()
    for path in sorted(files):
        digest.update(path.encode("utf-8"))
        digest.update(b"\0")
        digest.update(files[path].encode("utf-8"))
        digest.update(b"\0")
    return digest.hexdigest()


def _new_snapshot_id(now: float) -> str:
    return f"snap_{int(now * 1000)}_{uuid.uuid4().hex[:9]}"


class VersionHistory:
    """Undo/redo history for one project.

    The cursor is -1 when empty, otherwise a valid index into snapshots.
    When a sink is given, every change is mirrored to it synchronously.
    """

    def __init__(
        self,
        max_snapshots: int = 50,
        *,
        project_id: str = "default",
        sink: SnapshotRepo | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if max_snapshots < 1:
            raise ValueError("max_snapshots must be at least 1")
        self.max_snapshots = max_snapshots
        self.project_id = project_id
        self.sink = sink
        self._clock = clock
        self._snapshots: list[VersionSnapshot] = []
        self._index = -1

    @classmethod
    def load(
        cls,
        sink: SnapshotRepo,
        project_id: str,
        max_snapshots: int = 50,
        clock: Callable[[], float] = time.time,
    ) -> VersionHistory:
        """Rebuild a history from persisted snapshots; the cursor lands on the newest."""
        history = cls(max_snapshots, project_id=project_id, sink=sink, clock=clock)
        rows = sink.list(project_id)
        history._snapshots = [VersionSnapshot.from_row(row) for row in rows[-max_snapshots:]]
        history._index = len(history._snapshots) - 1
        logger.info("Loaded %d snapshots for project %s", len(history._snapshots), project_id)
        return history

    @property
    def snapshots(self) -> list[VersionSnapshot]:
        return list(self._snapshots)

    @property
    def current_index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return len(self._snapshots)

    def add_snapshot(
        self, files: Mapping[str, str], description: str, kind: SnapshotKind = "auto"
    ) -> VersionSnapshot | None:
        """Record files as the newest snapshot.

        Auto snapshots are skipped (None is returned) when the file set is
        empty or identical to the snapshot under the cursor.
        """
        if kind == "auto":
            if not files:
                return None
            current = self.current_snapshot()
            if current is not None and content_fingerprint(current.files) == content_fingerprint(files):
                logger.debug("Skipping auto snapshot: no changes since %s", current.id)
                return None

        now = self._clock()
        snapshot = VersionSnapshot(
            id=_new_snapshot_id(now), timestamp=now, description=description, kind=kind, files=dict(files)
        )

        discarded = self._snapshots[self._index + 1 :]
        self._snapshots = self._snapshots[: self._index + 1]
        self._snapshots.append(snapshot)

        evicted: list[VersionSnapshot] = []
        while len(self._snapshots) > self.max_snapshots:
            evicted.append(self._snapshots.pop(0))

        self._index = len(self._snapshots) - 1

        if self.sink is not None:
            dropped = [s.id for s in discarded + evicted]
            if dropped:
                self.sink.delete(self.project_id, dropped)
            self.sink.append(snapshot.to_row(self.project_id))

        return snapshot

    def can_undo(self) -> bool:
        return self._index > 0

    def can_redo(self) -> bool:
        return self._index < len(self._snapshots) - 1

    def undo(self) -> dict[str, str] | None:
        if not self.can_undo():
            return None
        self._index -= 1
        return dict(self._snapshots[self._index].files)

    def redo(self) -> dict[str, str] | None:
        if not self.can_redo():
            return None
        self._index += 1
        return dict(self._snapshots[self._index].files)

    def go_to(self, index: int) -> dict[str, str] | None:
        """Jump to index. Out-of-range indices are ignored and return None."""
        if index < 0 or index >= len(self._snapshots):
            return None
        self._index = index
        return dict(self._snapshots[index].files)

    def current_snapshot(self) -> VersionSnapshot | None:
        if self._index < 0 or self._index >= len(self._snapshots):
            return None
        return self._snapshots[self._index]

    def list_snapshots(self) -> list[dict[str, Any]]:
        """Snapshot summaries (without file contents), oldest first."""
        now = self._clock()
        return [
            {
                "id": s.id,
                "index": i,
                "timestamp": s.timestamp,
                "description": s.description,
                "kind": s.kind,
                "file_count": len(s.files),
                "is_current": i == self._index,
                "can_restore": i != self._index,
                "relative_time": relative_time(now - s.timestamp),
            }
            for i, s in enumerate(self._snapshots)
        ]

    def clear(self) -> None:
        self._snapshots = []
        self._index = -1
        if self.sink is not None:
            self.sink.clear(self.project_id)
