"""Shared storage domain models: provider-neutral data types."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SnapshotRow:
    id: str
    project_id: str
    timestamp: float
    description: str
    kind: str
    files: dict[str, str] = field(default_factory=dict)
