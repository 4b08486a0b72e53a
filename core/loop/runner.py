"""The turn loop: model call -> tool dispatch -> conversation update, until done.

One parameterized loop serves both strategies; a StrategyDescriptor decides
the tool set, whether tool use is forced, how completion is signalled and
the turn cap.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from core.events import (
    StreamEvent,
    file_created_event,
    file_deleted_event,
    file_edited_event,
    status_event,
    tool_call_event,
)
from core.filestore import VirtualFileStore
from core.loop.model import CompletionRequest, CompletionResponse, MalformedResponseError, ModelCollaborator
from core.loop.state import LoopState, LoopStateMachine
from core.loop.strategy import StrategyDescriptor
from core.tools import ExecutionLogEntry, ExecutionResult, ToolDispatcher, ToolInvocation

logger = logging.getLogger(__name__)

EmitFn = Callable[[StreamEvent], Awaitable[Any]]

DEFAULT_COMPLETION_MESSAGE = "Changes applied successfully."


def turn_limit_message(max_turns: int) -> str:
    return f"Reached maximum turns ({max_turns}). Changes have been applied."


@dataclass
class LoopOutcome:
    state: LoopState
    strategy: str
    turns: int
    files: dict[str, str]
    files_written: int = 0
    message: str | None = None
    error: str | None = None
    log: list[ExecutionLogEntry] = field(default_factory=list)
    conversation: list[BaseMessage] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state in (LoopState.COMPLETED, LoopState.TURN_LIMIT_REACHED)


async def _discard(event: StreamEvent) -> None:
    return None


class TurnLoop:
    """Runs one strategy against one file store.

    Owns its dispatcher, conversation and state machine; nothing is shared
    between loops. Cancellation (cancel_event or task cancellation) surfaces
    as asyncio.CancelledError after the state moves to CANCELLED.
    """

    def __init__(
        self,
        collaborator: ModelCollaborator,
        strategy: StrategyDescriptor,
        store: VirtualFileStore,
        *,
        emit: EmitFn | None = None,
        system_prompt: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ):
        self.collaborator = collaborator
        self.strategy = strategy
        self.store = store
        self.dispatcher = ToolDispatcher(store, allowed_tools=strategy.tool_names)
        self.machine = LoopStateMachine()
        self.conversation: list[BaseMessage] = []
        self.system_prompt = system_prompt
        self.cancel_event = cancel_event
        self._emit = emit or _discard
        self.turns = 0
        self.files_written = 0

    @property
    def state(self) -> LoopState:
        return self.machine.state

    async def run(self, task: str) -> LoopOutcome:
        self.machine.transition(LoopState.RUNNING)
        if self.system_prompt:
            self.conversation.append(SystemMessage(content=self.system_prompt))
        self.conversation.append(HumanMessage(content=task))

        try:
            return await self._run_turns()
        except asyncio.CancelledError:
            if not self.machine.is_terminal:
                self.machine.transition(LoopState.CANCELLED)
            logger.info("[%s] cancelled after %d turns", self.strategy.name, self.turns)
            raise

    async def _run_turns(self) -> LoopOutcome:
        strategy = self.strategy
        while self.turns < strategy.max_turns:
            self._check_cancelled()
            self.turns += 1
            await self._emit(status_event(self._turn_status(), turn=self.turns))

            try:
                response = await self.collaborator.complete(self._build_request())
            except MalformedResponseError as e:
                logger.warning("[%s] turn %d: unparsable model response: %s", strategy.name, self.turns, e)
                continue
            except Exception as e:
                logger.exception("[%s] turn %d: model call failed", strategy.name, self.turns)
                return self._finish(LoopState.FAILED, error=f"Model call failed: {e}")

            if response.tool_invocations:
                await self._handle_invocations(response)
                if strategy.completion_tool and self.dispatcher.completed:
                    return self._finish(LoopState.COMPLETED, message=self.dispatcher.completion_message)
                continue

            # No tool calls: the model is done talking
            if response.message is not None:
                self.conversation.append(response.message)
            elif response.final_text:
                self.conversation.append(AIMessage(content=response.final_text))
            if strategy.completion_tool:
                logger.warning("[%s] turn %d: reply without tool calls, stopping", strategy.name, self.turns)
                return self._finish(LoopState.COMPLETED, message=response.final_text)
            return self._finish(LoopState.COMPLETED, message=response.final_text or DEFAULT_COMPLETION_MESSAGE)

        return self._finish(LoopState.TURN_LIMIT_REACHED, message=turn_limit_message(strategy.max_turns))

    def _turn_status(self) -> str:
        if self.strategy.name == "single_shot":
            return f"Generating files (turn {self.turns})..."
        return f"Turn {self.turns}/{self.strategy.max_turns}..."

    def _build_request(self) -> CompletionRequest:
        return CompletionRequest(
            conversation=list(self.conversation),
            tool_schema=list(self.strategy.tools),
            strategy_hints={
                "strategy": self.strategy.name,
                "force_tool_choice": self.strategy.force_tool_choice,
                "temperature": self.strategy.temperature,
                "turn": self.turns,
                "max_turns": self.strategy.max_turns,
            },
        )

    async def _handle_invocations(self, response: CompletionResponse) -> None:
        invocations = [
            inv if inv.id else ToolInvocation(name=inv.name, arguments=inv.arguments, id=f"call_{self.turns}_{i}")
            for i, inv in enumerate(response.tool_invocations)
        ]
        self.conversation.append(response.message or self._assistant_message(response, invocations))

        for invocation in invocations:
            self._check_cancelled()
            await self._emit(tool_call_event(invocation.name, invocation.id))
            result = self.dispatcher.execute(invocation)
            await self._emit_mutations(result)
            self.conversation.append(
                ToolMessage(
                    content=json.dumps(result.to_response(), ensure_ascii=False),
                    tool_call_id=invocation.id,
                    name=invocation.name,
                    status="success" if result.success else "error",
                )
            )

    @staticmethod
    def _assistant_message(response: CompletionResponse, invocations: list[ToolInvocation]) -> AIMessage:
        return AIMessage(
            content=response.final_text or "",
            tool_calls=[
                {
                    "name": inv.name,
                    "args": inv.arguments if isinstance(inv.arguments, dict) else {},
                    "id": inv.id,
                }
                for inv in invocations
            ],
        )

    async def _emit_mutations(self, result: ExecutionResult) -> None:
        for mutation in result.mutations:
            if mutation.kind == "created":
                await self._emit(file_created_event(mutation.path, mutation.content or ""))
            elif mutation.kind == "edited":
                await self._emit(file_edited_event(mutation.path, mutation.content, mutation.note))
            else:
                await self._emit(file_deleted_event(mutation.path, mutation.note))

            if mutation.kind != "deleted":
                self.files_written += 1
                if self.strategy.name == "single_shot":
                    await self._emit(status_event(f"Created {self.files_written} files..."))

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise asyncio.CancelledError()

    def _finish(self, state: LoopState, *, message: str | None = None, error: str | None = None) -> LoopOutcome:
        self.machine.transition(state)
        logger.info(
            "[%s] finished: state=%s turns=%d files_written=%d",
            self.strategy.name,
            state.value,
            self.turns,
            self.files_written,
        )
        return LoopOutcome(
            state=state,
            strategy=self.strategy.name,
            turns=self.turns,
            files=self.store.snapshot(),
            files_written=self.files_written,
            message=message,
            error=error,
            log=self.dispatcher.log,
            conversation=list(self.conversation),
        )
