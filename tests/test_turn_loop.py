"""Tests for TurnLoop: turn accounting, termination and tool feedback."""

import asyncio
import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from core.filestore import VirtualFileStore
from core.loop import MULTI_TURN, SINGLE_SHOT, LoopState, MalformedResponseError, TurnLoop
from core.loop.runner import DEFAULT_COMPLETION_MESSAGE, turn_limit_message
from tests.fakes.collaborator import ScriptedCollaborator, call, text, tools


class EventSink:
    def __init__(self):
        self.events = []

    async def __call__(self, event):
        self.events.append(event)

    def kinds(self):
        return [event.type for event in self.events]

    def statuses(self):
        return [event.data["status"] for event in self.events if event.type == "status"]


def _loop(script, strategy=MULTI_TURN, files=None, default=None, **kwargs):
    collaborator = ScriptedCollaborator(script, default=default)
    sink = EventSink()
    loop = TurnLoop(collaborator, strategy, VirtualFileStore(files), emit=sink, **kwargs)
    return loop, collaborator, sink


@pytest.mark.asyncio
async def test_multi_turn_completes_on_plain_reply():
    loop, collaborator, sink = _loop(
        [tools(call("create_files", files={"index.html": "<h1>Hi</h1>"})), text("Built the page.")],
        system_prompt="be helpful",
    )
    outcome = await loop.run("make a page")

    assert outcome.state == LoopState.COMPLETED
    assert outcome.message == "Built the page."
    assert outcome.turns == 2
    assert outcome.files == {"index.html": "<h1>Hi</h1>"}
    assert outcome.files_written == 1
    assert sink.kinds() == ["status", "tool_call", "file_created", "status"]
    assert sink.statuses() == ["Turn 1/10...", "Turn 2/10..."]

    conversation = outcome.conversation
    assert isinstance(conversation[0], SystemMessage)
    assert isinstance(conversation[1], HumanMessage)
    assert isinstance(conversation[2], AIMessage)
    assert conversation[2].tool_calls[0]["id"] == "call_1_0"
    assert isinstance(conversation[3], ToolMessage)
    assert conversation[3].tool_call_id == "call_1_0"
    assert json.loads(conversation[3].content)["created"] == ["index.html"]
    assert conversation[-1].content == "Built the page."


@pytest.mark.asyncio
async def test_turn_cap_is_exact():
    strategy = MULTI_TURN.with_overrides(max_turns=3)
    loop, collaborator, _ = _loop([], strategy=strategy, default=lambda request: tools(call("list_files")))
    outcome = await loop.run("loop forever")

    assert outcome.state == LoopState.TURN_LIMIT_REACHED
    assert outcome.turns == 3
    assert len(collaborator.requests) == 3
    assert outcome.message == turn_limit_message(3)
    assert outcome.succeeded


@pytest.mark.asyncio
async def test_malformed_turn_is_skipped():
    loop, collaborator, _ = _loop([MalformedResponseError("garbled"), text("ok")])
    outcome = await loop.run("task")

    assert outcome.state == LoopState.COMPLETED
    assert outcome.turns == 2
    assert outcome.message == "ok"


@pytest.mark.asyncio
async def test_model_failure_fails_the_loop():
    loop, _, _ = _loop([tools(call("create_files", files={"a.txt": "A"})), RuntimeError("boom")])
    outcome = await loop.run("task")

    assert outcome.state == LoopState.FAILED
    assert outcome.error == "Model call failed: boom"
    assert not outcome.succeeded
    # Work done before the failure stays in the store
    assert outcome.files == {"a.txt": "A"}


@pytest.mark.asyncio
async def test_silent_reply_uses_default_message():
    loop, _, _ = _loop([])
    outcome = await loop.run("task")

    assert outcome.state == LoopState.COMPLETED
    assert outcome.turns == 1
    assert outcome.message == DEFAULT_COMPLETION_MESSAGE


@pytest.mark.asyncio
async def test_tool_errors_are_fed_back_and_loop_continues():
    loop, collaborator, sink = _loop(
        [
            tools(call("edit_file", file_path="missing.js", old_string="a", new_string="b")),
            text("gave up"),
        ]
    )
    outcome = await loop.run("task")

    assert outcome.state == LoopState.COMPLETED
    tool_message = collaborator.requests[1].conversation[-1]
    assert isinstance(tool_message, ToolMessage)
    assert tool_message.status == "error"
    assert json.loads(tool_message.content) == {"error": "File not found: missing.js"}
    # Failed edits produce no mutation events
    assert "file_edited" not in sink.kinds()
    assert outcome.log[0].success is False


@pytest.mark.asyncio
async def test_single_shot_forces_tools_and_stops_on_complete():
    loop, collaborator, sink = _loop(
        [
            tools(call("write_file", file_path="a.txt", content="A"), call("write_file", file_path="b.txt", content="B")),
            tools(call("complete", message="Built it")),
        ],
        strategy=SINGLE_SHOT,
    )
    outcome = await loop.run("two files")

    assert outcome.state == LoopState.COMPLETED
    assert outcome.message == "Built it"
    assert outcome.files_written == 2
    assert outcome.turns == 2
    assert sink.statuses() == [
        "Generating files (turn 1)...",
        "Created 1 files...",
        "Created 2 files...",
        "Generating files (turn 2)...",
    ]

    hints = collaborator.requests[0].strategy_hints
    assert hints["force_tool_choice"] is True
    assert hints["temperature"] == 0.7
    assert [tool["function"]["name"] for tool in collaborator.requests[0].tool_schema] == ["write_file", "complete"]


@pytest.mark.asyncio
async def test_single_shot_rejects_multi_turn_tools():
    loop, _, _ = _loop([tools(call("create_files", files={"a": "1"})), text("")], strategy=SINGLE_SHOT)
    outcome = await loop.run("task")

    assert outcome.files == {}
    assert outcome.files_written == 0
    assert outcome.log[0].error == "Unknown tool: create_files"


@pytest.mark.asyncio
async def test_cancel_event_stops_before_next_turn():
    cancel = asyncio.Event()

    def cancel_after_first(request):
        cancel.set()
        return tools(call("create_files", files={"kept.txt": "yes"}))

    loop, collaborator, _ = _loop([cancel_after_first], cancel_event=cancel)
    with pytest.raises(asyncio.CancelledError):
        await loop.run("task")

    assert loop.state == LoopState.CANCELLED
    assert len(collaborator.requests) == 1
    # The invocation batch was interrupted before dispatch
    assert loop.store.snapshot() == {}
