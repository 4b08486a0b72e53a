"""Turn Loop Package."""

from core.loop.model import (
    CollaboratorError,
    CompletionRequest,
    CompletionResponse,
    LangChainCollaborator,
    MalformedResponseError,
    ModelCollaborator,
)
from core.loop.orchestrator import (
    BuildOrchestrator,
    DirectExecution,
    RunHandle,
    RunOptions,
    RunOutcome,
    execute_tool_calls,
)
from core.loop.runner import LoopOutcome, TurnLoop
from core.loop.state import InvalidTransitionError, LoopState, LoopStateMachine
from core.loop.strategy import MULTI_TURN, SINGLE_SHOT, StrategyDescriptor, resolve_strategy

__all__ = [
    "BuildOrchestrator",
    "CollaboratorError",
    "CompletionRequest",
    "CompletionResponse",
    "DirectExecution",
    "InvalidTransitionError",
    "LangChainCollaborator",
    "LoopOutcome",
    "LoopState",
    "LoopStateMachine",
    "MULTI_TURN",
    "MalformedResponseError",
    "ModelCollaborator",
    "RunHandle",
    "RunOptions",
    "RunOutcome",
    "SINGLE_SHOT",
    "StrategyDescriptor",
    "TurnLoop",
    "execute_tool_calls",
    "resolve_strategy",
]
