"""Typed lifecycle events and the dispatcher that delivers them."""

from lmconductor.events.dispatcher import EventDispatcher
from lmconductor.events.types import (
    ASSEMBLER_EVENTS,
    EVENT_TYPES,
    ContentDelta,
    Event,
    ResponseReceived,
    StreamEnd,
    StreamError,
    StreamStart,
    ToolCallDelta,
    ToolCallEnd,
    ToolCallStart,
    ToolError,
    ToolExecuted,
    ToolExecuting,
    TurnError,
)

__all__ = [
    "ASSEMBLER_EVENTS",
    "EVENT_TYPES",
    "ContentDelta",
    "Event",
    "EventDispatcher",
    "ResponseReceived",
    "StreamEnd",
    "StreamError",
    "StreamStart",
    "ToolCallDelta",
    "ToolCallEnd",
    "ToolCallStart",
    "ToolError",
    "ToolExecuted",
    "ToolExecuting",
    "TurnError",
]
