"""Pydantic request models for the buildloop web API."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from core.loop import RunOptions


class RunRequest(BaseModel):
    message: str
    current_files: dict[str, str] = Field(default_factory=dict)
    strategy: Literal["single_shot", "multi_turn"] | None = None
    options: RunOptions = Field(default_factory=RunOptions)


class ToolCallPayload(BaseModel):
    name: str
    arguments: dict[str, Any] | str | None = None
    id: str = ""


class ExecuteToolsRequest(BaseModel):
    files: dict[str, str] = Field(default_factory=dict)
    calls: list[ToolCallPayload]


class SnapshotRequest(BaseModel):
    files: dict[str, str]
    description: str = "Manual checkpoint"
    kind: Literal["auto", "manual", "generation"] = "manual"
