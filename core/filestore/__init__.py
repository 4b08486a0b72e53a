"""Virtual File Store Package."""

from core.filestore.store import VirtualFileStore

__all__ = ["VirtualFileStore"]
