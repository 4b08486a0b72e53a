"""Typed events streamed to the caller while a run progresses."""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, Field

EventKind = Literal[
    "status",
    "file_created",
    "file_edited",
    "file_deleted",
    "tool_call",
    "message",
    "error",
    "done",
    "cancelled",
]

# Exactly one of these closes every stream
TERMINAL_KINDS = frozenset({"done", "cancelled"})


class StreamEvent(BaseModel):
    """One entry of the event stream. seq is assigned by the buffer on put."""

    type: EventKind
    data: dict[str, Any] = Field(default_factory=dict)
    seq: int = 0
    run_id: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_KINDS

    def to_sse(self) -> dict[str, str]:
        """Shape accepted by sse_starlette's EventSourceResponse."""
        return {
            "event": self.type,
            "data": json.dumps({**self.data, "seq": self.seq}, ensure_ascii=False),
            "id": str(self.seq),
        }


def status_event(text: str, **extra: Any) -> StreamEvent:
    return StreamEvent(type="status", data={"status": text, **extra})


def tool_call_event(name: str, call_id: str = "") -> StreamEvent:
    return StreamEvent(type="tool_call", data={"name": name, "id": call_id})


def file_created_event(path: str, content: str) -> StreamEvent:
    return StreamEvent(type="file_created", data={"path": path, "content": content, "size": len(content)})


def file_edited_event(path: str, content: str | None = None, explanation: str | None = None) -> StreamEvent:
    return StreamEvent(type="file_edited", data={"path": path, "content": content, "explanation": explanation})


def file_deleted_event(path: str, reason: str | None = None) -> StreamEvent:
    return StreamEvent(type="file_deleted", data={"path": path, "reason": reason})


def message_event(text: str) -> StreamEvent:
    return StreamEvent(type="message", data={"text": text})


def error_event(text: str) -> StreamEvent:
    return StreamEvent(type="error", data={"error": text})


def done_event(**summary: Any) -> StreamEvent:
    return StreamEvent(type="done", data=summary)


def cancelled_event(message: str = "Run cancelled") -> StreamEvent:
    return StreamEvent(type="cancelled", data={"message": message})
