"""Tool Dispatcher Package."""

from core.tools.dispatcher import ToolDispatcher
from core.tools.json_repair import extract_json_fragment, parse_arguments, repair_json
from core.tools.schema import MULTI_TURN_TOOLS, SINGLE_SHOT_TOOLS
from core.tools.types import ExecutionLogEntry, ExecutionResult, FileMutation, ToolInvocation

__all__ = [
    "ExecutionLogEntry",
    "ExecutionResult",
    "FileMutation",
    "MULTI_TURN_TOOLS",
    "SINGLE_SHOT_TOOLS",
    "ToolDispatcher",
    "ToolInvocation",
    "extract_json_fragment",
    "parse_arguments",
    "repair_json",
]
