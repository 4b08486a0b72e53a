"""Bounded event buffer decoupling run execution from stream consumers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from core.events.types import StreamEvent

logger = logging.getLogger(__name__)


class RunEventBuffer:
    """Ordered event log with cursor-based reading and bounded backpressure.

    Every event is kept in `events`; event seq N sits at index N-1, so a
    reader resumes after seq N by reading from cursor N. put() waits while
    maxsize events are past the furthest cursor any reader has reached, so
    a slow consumer holds the producer back instead of losing events.
    close() appends its terminal event without waiting for room.
    """

    def __init__(self, maxsize: int = 256, run_id: str = ""):
        self.run_id = run_id
        self.maxsize = maxsize
        self.events: list[StreamEvent] = []
        self.finished = asyncio.Event()
        self._notify = asyncio.Condition()
        self._delivered = 0

    @property
    def closed(self) -> bool:
        return self.finished.is_set()

    def _has_room(self) -> bool:
        return self.finished.is_set() or len(self.events) - self._delivered < self.maxsize

    def _append(self, event: StreamEvent) -> StreamEvent:
        event = event.model_copy(update={"seq": len(self.events) + 1, "run_id": self.run_id})
        self.events.append(event)
        return event

    async def put(self, event: StreamEvent) -> StreamEvent:
        async with self._notify:
            await self._notify.wait_for(self._has_room)
            if self.finished.is_set():
                raise RuntimeError(f"Event buffer for run {self.run_id or '?'} is closed")
            event = self._append(event)
            self._notify.notify_all()
        return event

    async def close(self, *terminal: StreamEvent) -> None:
        """Append the closing events (if any) and close. Never waits for room."""
        async with self._notify:
            if self.finished.is_set():
                return
            for event in terminal:
                self._append(event)
            self.finished.set()
            self._notify.notify_all()

    async def mark_done(self) -> None:
        await self.close()

    async def read(self, cursor: int, timeout: float | None = None) -> list[StreamEvent] | None:
        """Events from cursor on; waits until there are some.

        Returns [] once the buffer is closed and the cursor is at the end,
        and None when timeout elapses with nothing new.
        """
        cursor = max(cursor, 0)
        async with self._notify:
            try:
                await asyncio.wait_for(
                    self._notify.wait_for(lambda: cursor < len(self.events) or self.finished.is_set()),
                    timeout,
                )
            except TimeoutError:
                return None
            new = self.events[cursor:]
            if new and cursor + len(new) > self._delivered:
                self._delivered = cursor + len(new)
                self._notify.notify_all()
            return new

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        cursor = 0
        while True:
            events = await self.read(cursor)
            if not events:
                return
            cursor += len(events)
            for event in events:
                yield event


async def observe_run_events(
    buffer: RunEventBuffer,
    after: int = 0,
    *,
    heartbeat_seconds: float = 30.0,
    retry_ms: int = 5000,
) -> AsyncIterator[dict[str, Any]]:
    """Translate a run's buffer into SSE dicts, with keepalive comments while idle.

    Safe to abort and re-open: each observer keeps its own cursor. When
    after > 0, events with seq <= after are skipped (Last-Event-ID resume).
    """
    yield {"retry": retry_ms}
    cursor = max(after, 0)
    while True:
        events = await buffer.read(cursor, timeout=heartbeat_seconds)
        if events is None:
            yield {"comment": "keepalive"}
            continue
        if not events:
            return
        cursor += len(events)
        for event in events:
            yield event.to_sse()
