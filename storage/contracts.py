"""Storage repository contracts."""

from __future__ import annotations

from typing import Protocol

from storage.models import SnapshotRow


class SnapshotRepo(Protocol):
    """Persistence contract for version-history snapshots.

    Called synchronously whenever history changes, so implementations
    should be quick or buffer internally.
    """

    def append(self, row: SnapshotRow) -> None:
        """Persist one snapshot."""

    def list(self, project_id: str) -> list[SnapshotRow]:
        """All snapshots for a project, oldest first."""

    def delete(self, project_id: str, snapshot_ids: list[str]) -> int:
        """Remove evicted or discarded snapshots. Returns rows removed."""

    def clear(self, project_id: str) -> int:
        """Remove every snapshot of a project. Returns rows removed."""

    def close(self) -> None:
        """Release resources."""
