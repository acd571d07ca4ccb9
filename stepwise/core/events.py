"""Agent events and a best-effort, non-blocking event sink."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from typing import Any, AsyncIterator, ClassVar

from stepwise.utils.logging import get_logger

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

@dataclass
class AgentEvent:
    type: ClassVar[str] = ""

    def to_dict(self) -> dict[str, Any]:
        """Wire shape: ``{"type": <variant>, "data": {<fields>}}``."""
        return {"type": self.type, "data": asdict(self)}


@dataclass
class StepEvent(AgentEvent):
    type: ClassVar[str] = "Step"
    step: int
    max_steps: int


@dataclass
class ThoughtEvent(AgentEvent):
    type: ClassVar[str] = "Thought"
    content: str


@dataclass
class ToolCallEvent(AgentEvent):
    type: ClassVar[str] = "ToolCall"
    tool: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolOutputEvent(AgentEvent):
    type: ClassVar[str] = "ToolOutput"
    output: str


@dataclass
class ErrorEvent(AgentEvent):
    type: ClassVar[str] = "Error"
    error: str


@dataclass
class DoneEvent(AgentEvent):
    type: ClassVar[str] = "Done"


# ---------------------------------------------------------------------------
# Sink
# ---------------------------------------------------------------------------

class EventSink:
    """Bounded queue of agent events with at-most-once, best-effort delivery.

    ``emit`` never blocks and never raises: an event is dropped when the
    queue is full or the sink has been closed.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._queue: asyncio.Queue[AgentEvent] = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: AgentEvent) -> bool:
        if self._closed:
            self.dropped += 1
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            log.warning("event_queue_full", event_type=event.type)
            return False
        return True

    def close(self) -> None:
        self._closed = True

    def pending(self) -> list[AgentEvent]:
        """Drain whatever is queued right now without waiting."""
        items: list[AgentEvent] = []
        while not self._queue.empty():
            items.append(self._queue.get_nowait())
        return items

    async def stream(self, poll_interval: float = 0.1) -> AsyncIterator[AgentEvent]:
        """Yield events until the sink is closed and the queue is empty."""
        while True:
            if self._closed and self._queue.empty():
                return
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=poll_interval)
            except asyncio.TimeoutError:
                continue
            yield event
