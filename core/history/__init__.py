"""Version History Package."""

from core.history.version_history import (
    VersionHistory,
    VersionSnapshot,
    content_fingerprint,
    relative_time,
)

__all__ = ["VersionHistory", "VersionSnapshot", "content_fingerprint", "relative_time"]
