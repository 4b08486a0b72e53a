"""Event Stream Package."""

from core.events.buffer import RunEventBuffer, observe_run_events
from core.events.types import (
    TERMINAL_KINDS,
    StreamEvent,
    cancelled_event,
    done_event,
    error_event,
    file_created_event,
    file_deleted_event,
    file_edited_event,
    message_event,
    status_event,
    tool_call_event,
)

__all__ = [
    "RunEventBuffer",
    "StreamEvent",
    "TERMINAL_KINDS",
    "cancelled_event",
    "done_event",
    "error_event",
    "file_created_event",
    "file_deleted_event",
    "file_edited_event",
    "message_event",
    "observe_run_events",
    "status_event",
    "tool_call_event",
]
