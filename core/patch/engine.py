"""Patch engine: apply model-proposed (old -> new) edits with tolerant matching.

Models rarely reproduce the original text byte-for-byte, so an edit is tried
against an ordered cascade of strategies, stopping at the first that matches:

1. exact       - literal substring; every occurrence is replaced
2. flexible    - whitespace-agnostic; the smallest line range containing the
                 normalized old text is replaced by the new text verbatim
3. line-based  - trimmed, non-blank old lines must equal a contiguous run of
                 trimmed file lines; that run is replaced

Each strategy is a pure function (content, old, new) -> str | None.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

PatchStrategy = Callable[[str, str, str], "str | None"]

_WHITESPACE_RE = re.compile(r"\s+")


def _normalize_ws(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def exact_replace(content: str, old: str, new: str) -> str | None:
    """Literal match. More than one occurrence means every occurrence is replaced."""
    if not old or old not in content:
        return None
    return content.replace(old, new)


def flexible_replace(content: str, old: str, new: str) -> str | None:
    """Whitespace-agnostic match over whole lines."""
    needle = _normalize_ws(old)
    if not needle:
        return None

    lines = content.split("\n")
    normalized = [_normalize_ws(line) for line in lines]

    accumulated = ""
    for end in range(len(lines)):
        accumulated = _normalize_ws(f"{accumulated} {normalized[end]}")
        if needle not in accumulated:
            continue
        # Walk back from the end line to the latest start that still contains the needle
        start = end
        while needle not in _normalize_ws(" ".join(normalized[start : end + 1])):
            start -= 1
        return "\n".join(lines[:start] + [new] + lines[end + 1 :])

    return None


def line_based_replace(content: str, old: str, new: str) -> str | None:
    """Match trimmed non-blank old lines against a contiguous run of trimmed file lines."""
    old_lines = [line.strip() for line in old.split("\n") if line.strip()]
    if not old_lines:
        return None

    content_lines = content.split("\n")
    trimmed = [line.strip() for line in content_lines]
    span = len(old_lines)

    for start in range(len(content_lines) - span + 1):
        if trimmed[start : start + span] == old_lines:
            return "\n".join(content_lines[:start] + new.split("\n") + content_lines[start + span :])

    return None


# Order matters: the first strategy that returns content wins
PATCH_STRATEGIES: list[tuple[str, PatchStrategy]] = [
    ("exact", exact_replace),
    ("flexible", flexible_replace),
    ("line-based", line_based_replace),
]


@dataclass(frozen=True)
class PatchResult:
    """Outcome of apply_patch. Exactly one of content / error is set."""

    content: str | None = None
    strategy: str | None = None
    replacements: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def corrected(self) -> bool:
        """True when a tolerant strategy had to rescue the edit."""
        return self.ok and self.strategy != "exact"


def not_found_message(path: str) -> str:
    return f"Could not find matching content in {path}. The old_string may not exist exactly as specified."


def apply_patch(content: str, old: str, new: str, path: str = "file") -> PatchResult:
    """Run the strategy cascade over content.

    An empty or whitespace-only old string is rejected outright: every
    strategy would otherwise match it everywhere or nowhere.
    """
    if not old.strip():
        return PatchResult(error=f"old_string must not be empty (editing {path})")

    for name, strategy in PATCH_STRATEGIES:
        result = strategy(content, old, new)
        if result is None:
            continue
        replacements = content.count(old) if name == "exact" else 1
        if name != "exact":
            logger.info("Edit to %s matched via %s strategy", path, name)
        return PatchResult(content=result, strategy=name, replacements=replacements)

    return PatchResult(error=not_found_message(path))
