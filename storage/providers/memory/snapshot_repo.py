"""In-memory snapshot repository (process lifetime only)."""

from __future__ import annotations

import copy

from storage.models import SnapshotRow


class InMemorySnapshotRepo:
    """Repository boundary for snapshots kept in a dict per project."""

    def __init__(self) -> None:
        self._rows: dict[str, list[SnapshotRow]] = {}

    def append(self, row: SnapshotRow) -> None:
        self._rows.setdefault(row.project_id, []).append(copy.deepcopy(row))

    def list(self, project_id: str) -> list[SnapshotRow]:
        return [copy.deepcopy(row) for row in self._rows.get(project_id, [])]

    def delete(self, project_id: str, snapshot_ids: list[str]) -> int:
        rows = self._rows.get(project_id, [])
        doomed = set(snapshot_ids)
        kept = [row for row in rows if row.id not in doomed]
        self._rows[project_id] = kept
        return len(rows) - len(kept)

    def clear(self, project_id: str) -> int:
        return len(self._rows.pop(project_id, []))

    def close(self) -> None:
        return None
