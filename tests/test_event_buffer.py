"""Tests for RunEventBuffer ordering, backpressure, resume and SSE translation."""

import asyncio
import json

import pytest

from core.events import (
    RunEventBuffer,
    StreamEvent,
    cancelled_event,
    done_event,
    error_event,
    observe_run_events,
    status_event,
)


@pytest.mark.asyncio
async def test_put_assigns_sequence_and_run_id():
    buffer = RunEventBuffer(maxsize=8, run_id="r-1")
    first = await buffer.put(status_event("one"))
    second = await buffer.put(status_event("two"))

    assert (first.seq, second.seq) == (1, 2)
    assert first.run_id == "r-1"
    assert [e.data["status"] for e in buffer.events] == ["one", "two"]


@pytest.mark.asyncio
async def test_iteration_stops_after_mark_done():
    buffer = RunEventBuffer(maxsize=8)
    await buffer.put(status_event("working"))
    await buffer.close(done_event(success=True))
    await buffer.mark_done()

    events = [event async for event in buffer]
    assert [e.type for e in events] == ["status", "done"]
    assert events[-1].is_terminal
    # Later reads keep seeing the end of the stream
    assert await buffer.read(len(buffer.events)) == []
    assert await buffer.read(len(buffer.events)) == []


@pytest.mark.asyncio
async def test_put_after_close_raises():
    buffer = RunEventBuffer(maxsize=2, run_id="r-x")
    await buffer.mark_done()
    with pytest.raises(RuntimeError, match="r-x"):
        await buffer.put(status_event("late"))


@pytest.mark.asyncio
async def test_slow_consumer_applies_backpressure_without_losing_events():
    buffer = RunEventBuffer(maxsize=2)

    async def produce():
        for i in range(10):
            await buffer.put(status_event(f"s{i}"))
        await buffer.mark_done()

    producer = asyncio.create_task(produce())
    await asyncio.sleep(0)
    # Producer is parked once two events are unread
    assert not producer.done()
    assert len(buffer.events) == 2

    received = []
    async for event in buffer:
        received.append(event.data["status"])
        await asyncio.sleep(0)
    await producer

    assert received == [f"s{i}" for i in range(10)]


@pytest.mark.asyncio
async def test_close_appends_terminal_events_while_full():
    buffer = RunEventBuffer(maxsize=1)
    await buffer.put(status_event("unread"))

    await asyncio.wait_for(buffer.close(error_event("boom"), done_event(success=False)), 1)

    assert buffer.closed
    assert [e.type for e in buffer.events] == ["status", "error", "done"]
    assert [e.seq for e in buffer.events] == [1, 2, 3]


@pytest.mark.asyncio
async def test_close_releases_producer_parked_on_full_buffer():
    buffer = RunEventBuffer(maxsize=1)
    await buffer.put(status_event("unread"))
    parked = asyncio.create_task(buffer.put(status_event("blocked")))
    await asyncio.sleep(0)
    assert not parked.done()

    await buffer.close(cancelled_event("stopped"))

    with pytest.raises(RuntimeError):
        await asyncio.wait_for(parked, 1)
    assert [e.type for e in buffer.events] == ["status", "cancelled"]


@pytest.mark.asyncio
async def test_interrupted_put_leaves_no_sequence_gap():
    buffer = RunEventBuffer(maxsize=1)
    await buffer.put(status_event("first"))
    parked = asyncio.create_task(buffer.put(status_event("never")))
    await asyncio.sleep(0)
    parked.cancel()
    with pytest.raises(asyncio.CancelledError):
        await parked

    await buffer.close(cancelled_event("stopped"))

    assert [e.seq for e in buffer.events] == [1, 2]
    assert buffer.events[-1].type == "cancelled"


@pytest.mark.asyncio
async def test_read_returns_none_when_idle():
    buffer = RunEventBuffer()
    assert await buffer.read(0, timeout=0.01) is None


@pytest.mark.asyncio
async def test_read_from_cursor_replays_later_events():
    buffer = RunEventBuffer()
    for i in range(4):
        await buffer.put(status_event(f"s{i}"))

    later = await buffer.read(2)
    assert [e.seq for e in later] == [3, 4]
    assert len(await buffer.read(0)) == 4


def test_to_sse_shape():
    event = StreamEvent(type="error", data={"error": "boom"}, seq=7)
    sse = event.to_sse()
    assert sse["event"] == "error"
    assert sse["id"] == "7"
    assert json.loads(sse["data"]) == {"error": "boom", "seq": 7}


@pytest.mark.asyncio
async def test_observe_run_events_emits_retry_keepalive_and_events():
    buffer = RunEventBuffer()
    stream = observe_run_events(buffer, heartbeat_seconds=0.01, retry_ms=1234)

    assert await stream.__anext__() == {"retry": 1234}
    assert await stream.__anext__() == {"comment": "keepalive"}

    await buffer.put(error_event("bad"))
    await buffer.close(done_event(success=False))

    rest = [item async for item in stream]
    assert [item["event"] for item in rest] == ["error", "done"]


@pytest.mark.asyncio
async def test_reconnected_observer_resumes_after_last_seen_event():
    buffer = RunEventBuffer()
    first = observe_run_events(buffer, heartbeat_seconds=1)
    await first.__anext__()
    await buffer.put(status_event("one"))
    await buffer.put(status_event("two"))
    seen = await first.__anext__()
    assert seen["id"] == "1"
    # Client drops the connection here
    await first.aclose()

    await buffer.put(status_event("three"))
    await buffer.close(done_event(success=True))

    resumed = [item async for item in observe_run_events(buffer, after=int(seen["id"]), heartbeat_seconds=1)]
    assert resumed[0] == {"retry": 5000}
    assert [item["id"] for item in resumed[1:]] == ["2", "3", "4"]
    assert resumed[-1]["event"] == "done"
