"""SQLite repository for version-history snapshots."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

from storage.models import SnapshotRow


class SQLiteSnapshotRepo:
    """Repository boundary for the snapshots table."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        if db_path is None:
            db_path = Path.home() / ".buildloop" / "buildloop.db"
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_table()

    def append(self, row: SnapshotRow) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO snapshots (id, project_id, timestamp, description, kind, files)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    row.id,
                    row.project_id,
                    row.timestamp,
                    row.description,
                    row.kind,
                    json.dumps(row.files, ensure_ascii=False),
                ),
            )
            conn.commit()

    def list(self, project_id: str) -> list[SnapshotRow]:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                """
                SELECT * FROM snapshots
                WHERE project_id = ?
                ORDER BY seq ASC
                """,
                (project_id,),
            )
            rows = cursor.fetchall()
        return [self._row_to_snapshot(row) for row in rows]

    def delete(self, project_id: str, snapshot_ids: list[str]) -> int:
        if not snapshot_ids:
            return 0
        placeholders = ",".join("?" * len(snapshot_ids))
        with sqlite3.connect(self.db_path) as conn:
            # @@@param_sql - snapshot ids come from runtime state; keep IN-clause parameterized.
            cursor = conn.execute(
                f"DELETE FROM snapshots WHERE project_id = ? AND id IN ({placeholders})",
                [project_id, *snapshot_ids],
            )
            conn.commit()
            return int(cursor.rowcount)

    def clear(self, project_id: str) -> int:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM snapshots WHERE project_id = ?", (project_id,))
            conn.commit()
            return int(cursor.rowcount)

    def close(self) -> None:
        """Compatibility no-op for protocol parity."""
        return None

    def _ensure_table(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            # seq keeps insertion order stable even when timestamps collide
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS snapshots (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    project_id TEXT NOT NULL,
                    timestamp REAL NOT NULL,
                    description TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    files TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_snapshots_project
                ON snapshots(project_id, seq)
                """
            )
            conn.commit()

    def _row_to_snapshot(self, row: sqlite3.Row) -> SnapshotRow:
        return SnapshotRow(
            id=row["id"],
            project_id=row["project_id"],
            timestamp=row["timestamp"],
            description=row["description"],
            kind=row["kind"],
            files=json.loads(row["files"]),
        )
