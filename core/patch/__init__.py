"""Patch Engine Package."""

from core.patch.engine import (
    PATCH_STRATEGIES,
    PatchResult,
    apply_patch,
    exact_replace,
    flexible_replace,
    line_based_replace,
)

__all__ = [
    "PATCH_STRATEGIES",
    "PatchResult",
    "apply_patch",
    "exact_replace",
    "flexible_replace",
    "line_based_replace",
]
