"""In-memory project tree owned by a single run."""

from __future__ import annotations

from collections.abc import Iterator, Mapping


class VirtualFileStore:
    """Mapping of path -> text content.

    Paths are case-sensitive, forward-slash separated strings. Enumeration
    follows insertion order; overwriting an existing path keeps its position.
    Not safe for concurrent use; the owning run serializes access.
    """

    def __init__(self, files: Mapping[str, str] | None = None):
        self._files: dict[str, str] = dict(files) if files else {}

    def read(self, path: str) -> str | None:
        return self._files.get(path)

    def write(self, path: str, text: str) -> None:
        self._files[path] = text

    def delete(self, path: str) -> bool:
        """Remove path; returns False when it was not present."""
        if path not in self._files:
            return False
        del self._files[path]
        return True

    def exists(self, path: str) -> bool:
        return path in self._files

    def list(self) -> list[str]:
        return list(self._files)

    def snapshot(self) -> dict[str, str]:
        """Copy of the current contents, detached from the store."""
        return dict(self._files)

    def reset(self, files: Mapping[str, str] | None = None) -> None:
        """Replace the whole tree (used when a run is seeded)."""
        self._files = dict(files) if files else {}

    def total_size(self) -> int:
        return sum(len(text) for text in self._files.values())

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._files))

    def __repr__(self) -> str:
        return f"VirtualFileStore(files={len(self._files)})"
