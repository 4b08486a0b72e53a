from .contracts import SnapshotRepo
from .models import SnapshotRow

__all__ = ["SnapshotRepo", "SnapshotRow"]
