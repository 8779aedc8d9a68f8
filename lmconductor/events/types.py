"""
Lifecycle event variants.

Each event is a frozen dataclass with a dotted ``name``. The set is closed:
the dispatcher only accepts names listed in EVENT_TYPES, so a typo in a
listener registration fails loudly instead of never firing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from lmconductor.backend.models import Response, StreamChunk, ToolCallFragment
    from lmconductor.conversation.models import ToolCallRequest


@dataclass(frozen=True)
class Event:
    """Base class for all events."""

    name: ClassVar[str] = "event"


# --- Tool executor -------------------------------------------------------------

@dataclass(frozen=True)
class ToolExecuting(Event):
    name: ClassVar[str] = "tool.executing"

    tool_name: str
    arguments: dict[str, Any] | list[Any]
    id: str


@dataclass(frozen=True)
class ToolExecuted(Event):
    name: ClassVar[str] = "tool.executed"

    tool_name: str
    arguments: dict[str, Any] | list[Any]
    id: str
    result: Any


@dataclass(frozen=True)
class ToolError(Event):
    """A tool call failed; ``kind`` is ToolNotFound, UnexpectedToolError or a declared kind."""

    name: ClassVar[str] = "tool.error"

    tool_name: str
    arguments: dict[str, Any] | list[Any]
    id: str
    kind: str
    message: str
    details: Any = None
    exception: BaseException | None = field(default=None, compare=False)


# --- Stream assembler ----------------------------------------------------------

@dataclass(frozen=True)
class StreamStart(Event):
    name: ClassVar[str] = "stream_start"

    chunk: StreamChunk


@dataclass(frozen=True)
class ContentDelta(Event):
    name: ClassVar[str] = "content"

    delta: str


@dataclass(frozen=True)
class ToolCallStart(Event):
    name: ClassVar[str] = "tool_call_start"

    index: int
    id: str | None = None


@dataclass(frozen=True)
class ToolCallDelta(Event):
    name: ClassVar[str] = "tool_call_delta"

    index: int
    fragment: ToolCallFragment


@dataclass(frozen=True)
class ToolCallEnd(Event):
    name: ClassVar[str] = "tool_call_end"

    index: int
    tool_call: ToolCallRequest


@dataclass(frozen=True)
class StreamEnd(Event):
    name: ClassVar[str] = "stream_end"

    content: str
    tool_calls: list[ToolCallRequest]


@dataclass(frozen=True)
class StreamError(Event):
    name: ClassVar[str] = "stream_error"

    error: BaseException


# --- Turn handlers -------------------------------------------------------------

@dataclass(frozen=True)
class ResponseReceived(Event):
    name: ClassVar[str] = "response"

    response: Response


@dataclass(frozen=True)
class TurnError(Event):
    name: ClassVar[str] = "error"

    error: BaseException


EVENT_TYPES: dict[str, type[Event]] = {
    cls.name: cls
    for cls in (
        ToolExecuting,
        ToolExecuted,
        ToolError,
        StreamStart,
        ContentDelta,
        ToolCallStart,
        ToolCallDelta,
        ToolCallEnd,
        StreamEnd,
        StreamError,
        ResponseReceived,
        TurnError,
    )
}

ASSEMBLER_EVENTS: frozenset[str] = frozenset(
    cls.name
    for cls in (StreamStart, ContentDelta, ToolCallStart, ToolCallDelta, ToolCallEnd, StreamEnd, StreamError)
)
