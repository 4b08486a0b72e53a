"""Recover tool arguments that arrive as malformed or truncated JSON text."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\n?|\n?```")
_CLOSERS = {"{": "}", "[": "]"}


@dataclass(frozen=True)
class JsonFragment:
    fragment: str
    is_balanced: bool
    first_open: int
    end_index: int


def extract_json_fragment(text: str) -> JsonFragment:
    """Locate the first top-level JSON object in text (code fences stripped).

    Returns the balanced object when one closes, otherwise everything from the
    first "{" to the end so the caller can attempt a repair.
    """
    cleaned = _FENCE_RE.sub("", text)
    first_open = cleaned.find("{")
    if first_open == -1:
        return JsonFragment(fragment=cleaned, is_balanced=False, first_open=-1, end_index=-1)

    in_string = False
    escape_next = False
    depth = 0
    for i in range(first_open, len(cleaned)):
        char = cleaned[i]
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = in_string
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return JsonFragment(
                    fragment=cleaned[first_open : i + 1], is_balanced=True, first_open=first_open, end_index=i
                )

    return JsonFragment(fragment=cleaned[first_open:], is_balanced=False, first_open=first_open, end_index=-1)


def repair_json(text: str) -> str:
    """Close an unterminated string and any open brackets/braces, innermost first."""
    stack: list[str] = []
    in_string = False
    escape_next = False
    for char in text:
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
        elif not in_string:
            if char in _CLOSERS:
                stack.append(_CLOSERS[char])
            elif stack and char == stack[-1]:
                stack.pop()

    repaired = text
    # A dangling backslash would escape the closing quote
    if escape_next:
        repaired += "\\"
    if in_string:
        repaired += '"'
    repaired = repaired.rstrip()
    if repaired.endswith(","):
        repaired = repaired[:-1]
    return repaired + "".join(reversed(stack))


def parse_arguments(raw: Any) -> dict[str, Any]:
    """Coerce tool-call arguments into a dict.

    Dicts pass through; strings are parsed as JSON, then via fragment
    extraction + repair. Raises ValueError when nothing usable is found.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str):
        raise ValueError(f"arguments must be an object, got {type(raw).__name__}")

    candidates = [raw]
    fragment = extract_json_fragment(raw)
    if fragment.first_open != -1:
        candidates.append(fragment.fragment if fragment.is_balanced else repair_json(fragment.fragment))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ValueError(f"could not parse arguments: {raw[:80]!r}")
