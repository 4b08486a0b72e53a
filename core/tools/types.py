"""Data types shared by the dispatcher, the turn loop and the caller surface."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

MutationKind = Literal["created", "edited", "deleted"]


@dataclass(frozen=True)
class ToolInvocation:
    """A single tool call proposed by the model.

    arguments may still be a raw JSON string when the collaborator could not
    decode it; the dispatcher parses it lazily.
    """

    name: str
    arguments: dict[str, Any] | str | None = None
    id: str = ""


@dataclass(frozen=True)
class FileMutation:
    """One change applied to the file store, surfaced as a stream event."""

    kind: MutationKind
    path: str
    content: str | None = None
    note: str | None = None  # explanation for edits, reason for deletes


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one tool invocation, fed back to the model as the tool response."""

    tool_name: str
    success: bool
    call_id: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    mutations: tuple[FileMutation, ...] = ()

    @property
    def path(self) -> str | None:
        return self.data.get("path")

    @property
    def paths(self) -> list[str]:
        return list(self.data.get("created", []))

    @property
    def strategy(self) -> str | None:
        return self.data.get("strategy")

    def to_response(self) -> dict[str, Any]:
        """Payload returned to the model; partial successes carry both data and error."""
        if self.error and not self.data:
            return {"error": self.error}
        if self.error:
            return {**self.data, "error": self.error}
        return dict(self.data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.tool_name,
            "id": self.call_id,
            "success": self.success,
            "result": self.data or None,
            "error": self.error,
        }


@dataclass(frozen=True)
class ExecutionLogEntry:
    success: bool
    path: str
    operation: str
    error: str | None = None
    corrected: bool = False

    def to_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {"success": self.success, "path": self.path, "operation": self.operation}
        if self.error:
            entry["error"] = self.error
        if self.operation == "edit":
            entry["corrected"] = self.corrected
        return entry
