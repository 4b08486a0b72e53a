"""Direct tool execution endpoint (no model loop)."""

from typing import Any

from fastapi import APIRouter

from backend.web.models.requests import ExecuteToolsRequest
from core.loop import execute_tool_calls
from core.tools import ToolInvocation

router = APIRouter(prefix="/api/tools", tags=["tools"])


@router.post("/execute")
async def execute_tools(payload: ExecuteToolsRequest) -> dict[str, Any]:
    """Apply tool calls to the given files and return results, files and log."""
    calls = [ToolInvocation(name=c.name, arguments=c.arguments, id=c.id) for c in payload.calls]
    execution = execute_tool_calls(payload.files, calls)
    return {
        "results": [r.to_dict() for r in execution.results],
        "files": execution.files,
        "log": [entry.to_dict() for entry in execution.log],
    }
