"""Run entry point: seeds a file store, drives the strategies, streams events.

A run is an asyncio task (the producer) writing into a bounded
RunEventBuffer that the caller drains (the consumer). The stream always
ends with exactly one terminal event: `done` (after `error` on failure) or
`cancelled`.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from config.schema import BuilderSettings
from core.events import (
    RunEventBuffer,
    StreamEvent,
    cancelled_event,
    done_event,
    error_event,
    message_event,
    status_event,
)
from core.filestore import VirtualFileStore
from core.history import VersionHistory
from core.loop.model import ModelCollaborator
from core.loop.prompts import build_system_prompt
from core.loop.runner import LoopOutcome, TurnLoop
from core.loop.state import LoopState
from core.loop.strategy import StrategyDescriptor, resolve_strategy
from core.tools import ExecutionLogEntry, ExecutionResult, ToolDispatcher, ToolInvocation

logger = logging.getLogger(__name__)

FALLBACK_STATUS = "Single-shot generation produced no files, switching to multi-turn mode..."


class RunOptions(BaseModel):
    """Per-run knobs supplied by the caller."""

    max_turns: int | None = Field(None, gt=0, description="Turn cap override for the requested strategy")
    temperature: float | None = Field(None, ge=0.0, le=2.0, description="Sampling override")
    context: dict[str, str] = Field(default_factory=dict, description="Key facts appended to the system prompt")
    system_prompt: str | None = Field(None, description="Extra instructions for this run only")
    snapshot_description: str | None = Field(None, description="Label for the generation snapshot")
    fallback: bool | None = Field(None, description="Override loop.fallback_enabled")


@dataclass
class RunOutcome:
    run_id: str
    state: LoopState
    strategy: str
    turns: int
    files: dict[str, str]
    message: str | None = None
    error: str | None = None
    fell_back: bool = False
    snapshot_id: str | None = None
    log: list[ExecutionLogEntry] = field(default_factory=list)

    def summary(self) -> dict[str, Any]:
        return {
            "success": self.state in (LoopState.COMPLETED, LoopState.TURN_LIMIT_REACHED),
            "state": self.state.value,
            "strategy": self.strategy,
            "turns": self.turns,
            "file_count": len(self.files),
            "fell_back": self.fell_back,
            "snapshot_id": self.snapshot_id,
        }


@dataclass
class DirectExecution:
    results: list[ExecutionResult]
    files: dict[str, str]
    log: list[ExecutionLogEntry]


class RunHandle:
    """Caller's view of a started run."""

    def __init__(self, run_id: str, task_text: str, starting_files: dict[str, str], buffer: RunEventBuffer):
        self.run_id = run_id
        self.task_text = task_text
        self.starting_files = starting_files
        self.buffer = buffer
        self.cancel_event = asyncio.Event()
        self.store = VirtualFileStore(starting_files)
        self.outcome: RunOutcome | None = None
        self.task: asyncio.Task | None = None
        self._started = False

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    @property
    def cancelled(self) -> bool:
        return self.outcome is not None and self.outcome.state == LoopState.CANCELLED

    def events(self) -> AsyncIterator[StreamEvent]:
        return self.buffer.__aiter__()

    def cancel(self) -> None:
        """Request cancellation. An in-flight model call is interrupted; files written so far are kept."""
        if self.cancel_event.is_set():
            return
        self.cancel_event.set()
        # Only cancel a task that has begun running, so its handler still emits `cancelled`
        if self.task is not None and self._started and not self.task.done():
            self.task.cancel()

    async def wait(self) -> RunOutcome | None:
        if self.task is not None:
            await self.task
        return self.outcome


def _coerce_invocation(call: ToolInvocation | Mapping[str, Any]) -> ToolInvocation:
    if isinstance(call, ToolInvocation):
        return call
    arguments = call.get("arguments", call.get("args"))
    return ToolInvocation(name=call.get("name", ""), arguments=arguments, id=call.get("id", ""))


def execute_tool_calls(
    files: Mapping[str, str],
    calls: Iterable[ToolInvocation | Mapping[str, Any]],
) -> DirectExecution:
    """Apply tool calls directly to a copy of files, without the model loop."""
    store = VirtualFileStore(files)
    dispatcher = ToolDispatcher(store)
    results = dispatcher.execute_all(_coerce_invocation(call) for call in calls)
    return DirectExecution(results=results, files=store.snapshot(), log=dispatcher.log)


class BuildOrchestrator:
    """Starts runs for one project and records their results in its history."""

    def __init__(
        self,
        collaborator: ModelCollaborator,
        settings: BuilderSettings | None = None,
        *,
        history: VersionHistory | None = None,
    ):
        self.collaborator = collaborator
        self.settings = settings or BuilderSettings()
        self.history = history

    def start(
        self,
        task: str,
        current_files: Mapping[str, str] | None = None,
        *,
        strategy: str | None = None,
        options: RunOptions | None = None,
        run_id: str | None = None,
    ) -> RunHandle:
        """Start a run in the background; must be called from a running event loop."""
        strategy_name = strategy or self.settings.loop.default_strategy
        descriptor = resolve_strategy(strategy_name, self.settings)
        options = options or RunOptions()

        run_id = run_id or uuid.uuid4().hex
        buffer = RunEventBuffer(maxsize=self.settings.stream.queue_size, run_id=run_id)
        handle = RunHandle(run_id, task, dict(current_files or {}), buffer)
        handle.task = asyncio.create_task(self._produce(handle, descriptor, options))
        logger.info("Run %s started (strategy=%s, files=%d)", run_id, descriptor.name, len(handle.starting_files))
        return handle

    async def run(
        self,
        task: str,
        current_files: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> tuple[RunOutcome | None, list[StreamEvent]]:
        """Start a run and drain its stream; returns the outcome and every event."""
        handle = self.start(task, current_files, **kwargs)
        events = [event async for event in handle.events()]
        return await handle.wait(), events

    def execute_tool_calls(
        self,
        files: Mapping[str, str],
        calls: Iterable[ToolInvocation | Mapping[str, Any]],
    ) -> DirectExecution:
        return execute_tool_calls(files, calls)

    # ── Producer ──

    async def _produce(self, handle: RunHandle, strategy: StrategyDescriptor, options: RunOptions) -> None:
        handle._started = True
        buffer = handle.buffer
        try:
            await buffer.put(status_event("Starting generation..."))
            outcome = await self._execute(handle, strategy, options)
            handle.outcome = outcome

            if outcome.state == LoopState.FAILED:
                await buffer.close(error_event(outcome.error or "Run failed"), done_event(**outcome.summary()))
                return

            if outcome.message:
                await buffer.put(message_event(outcome.message))
            await buffer.put(status_event("Complete", file_count=len(outcome.files), turns=outcome.turns))
            # Nothing awaits between this check and the terminal event
            if handle.cancel_event.is_set():
                raise asyncio.CancelledError()
            if self.history is not None:
                description = options.snapshot_description or f"Generation: {handle.task_text[:80]}"
                snapshot = self.history.add_snapshot(outcome.files, description, "generation")
                outcome.snapshot_id = snapshot.id if snapshot else None
            await buffer.close(done_event(**outcome.summary()))
        except asyncio.CancelledError:
            logger.info("Run %s cancelled", handle.run_id)
            handle.outcome = RunOutcome(
                run_id=handle.run_id,
                state=LoopState.CANCELLED,
                strategy=strategy.name,
                turns=0,
                files=handle.store.snapshot(),
            )
            await buffer.close(cancelled_event("Run cancelled; files written so far were kept"))
        except Exception as e:
            logger.exception("Run %s crashed", handle.run_id)
            handle.outcome = RunOutcome(
                run_id=handle.run_id,
                state=LoopState.FAILED,
                strategy=strategy.name,
                turns=0,
                files=handle.store.snapshot(),
                error=str(e),
            )
            await buffer.close(error_event(str(e)), done_event(**handle.outcome.summary()))
        finally:
            await buffer.mark_done()

    async def _execute(self, handle: RunHandle, strategy: StrategyDescriptor, options: RunOptions) -> RunOutcome:
        strategy = strategy.with_overrides(max_turns=options.max_turns, temperature=options.temperature)
        first = await self._run_loop(handle, strategy, options)

        fallback = options.fallback if options.fallback is not None else self.settings.loop.fallback_enabled
        if strategy.name == "single_shot" and fallback and first.succeeded and first.files_written == 0:
            logger.warning("Run %s: single-shot wrote no files, falling back to multi-turn", handle.run_id)
            await handle.buffer.put(status_event(FALLBACK_STATUS, fallback="multi_turn"))
            second = await self._run_loop(handle, resolve_strategy("multi_turn", self.settings), options)
            return self._to_outcome(handle, second, turns=first.turns + second.turns, fell_back=True)

        outcome = self._to_outcome(handle, first, turns=first.turns)
        if strategy.name == "single_shot" and first.succeeded and first.files_written and not outcome.message:
            outcome.message = f"Created {first.files_written} files successfully."
        return outcome

    async def _run_loop(self, handle: RunHandle, strategy: StrategyDescriptor, options: RunOptions) -> LoopOutcome:
        # Every strategy starts from the caller's original files
        handle.store = VirtualFileStore(handle.starting_files)
        extra = "\n\n".join(p for p in (self.settings.system_prompt, options.system_prompt) if p) or None
        prompt = build_system_prompt(
            strategy.name, handle.store.list(), context=options.context, extra_instructions=extra
        )
        loop = TurnLoop(
            self.collaborator,
            strategy,
            handle.store,
            emit=handle.buffer.put,
            system_prompt=prompt,
            cancel_event=handle.cancel_event,
        )
        return await loop.run(handle.task_text)

    @staticmethod
    def _to_outcome(handle: RunHandle, loop: LoopOutcome, *, turns: int, fell_back: bool = False) -> RunOutcome:
        return RunOutcome(
            run_id=handle.run_id,
            state=loop.state,
            strategy=loop.strategy,
            turns=turns,
            files=loop.files,
            message=loop.message,
            error=loop.error,
            fell_back=fell_back,
            log=loop.log,
        )
