"""
Streaming chunk assembler.

A streamed backend turn arrives as many small chunks: text deltas, pieces of
tool calls, and finally a finish (or error) signal. The assembler folds those
chunks back into the turn's full text and its complete tool calls, emitting
an event for every state change along the way.

State machine for one turn:

    IDLE --first chunk--> RECEIVING --finish--> DONE
                                    --error/bad arguments--> FAILED

Tool-call fragments are keyed by their ``index``; each index is an
append-only channel, concatenated strictly in arrival order. A tool call is
complete only when the finish signal arrives. Argument text that happens to
parse as JSON mid-stream means nothing, since a prefix of valid JSON can be
valid JSON itself (e.g. ``1`` before ``12``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from lmconductor.backend.models import StreamChunk, ToolCallFragment, fallback_call_id
from lmconductor.conversation.models import ToolCallRequest
from lmconductor.errors import BackendError, MalformedToolArguments
from lmconductor.events.dispatcher import EventDispatcher
from lmconductor.events.types import (
    ContentDelta,
    StreamEnd,
    StreamError,
    StreamStart,
    ToolCallDelta,
    ToolCallEnd,
    ToolCallStart,
)

logger = logging.getLogger(__name__)


class AssemblerState(str, Enum):
    IDLE = "idle"
    RECEIVING = "receiving"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PendingToolCall:
    """Accumulator for one tool call while its fragments arrive."""

    index: int
    id: str | None = None
    name: str = ""
    arguments: str = ""


class StreamAssembler:
    """
    Rebuilds one streamed turn from its chunks.

    One instance serves one turn at a time; call reset() before reusing it.
    Listeners registered on ``events`` survive reset().

    Args:
        events: Dispatcher to emit on (a private one is created by default)
    """

    def __init__(self, events: EventDispatcher | None = None):
        self.events = events or EventDispatcher()
        self._state = AssemblerState.IDLE
        self._content: list[str] = []
        self._pending: dict[int, PendingToolCall] = {}
        self._tool_calls: list[ToolCallRequest] = []
        self._error: BaseException | None = None

    @property
    def state(self) -> AssemblerState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in (AssemblerState.DONE, AssemblerState.FAILED)

    @property
    def content(self) -> str:
        """Text accumulated so far."""
        return "".join(self._content)

    @property
    def tool_calls(self) -> list[ToolCallRequest]:
        """Completed tool calls (populated once the turn is DONE)."""
        return list(self._tool_calls)

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def pending_fragments(self) -> dict[int, PendingToolCall]:
        """Tool calls still being assembled, by index."""
        return dict(self._pending)

    def feed(self, chunk: StreamChunk) -> None:
        """Process one chunk. Chunks arriving after DONE or FAILED are ignored."""
        if self.is_terminal:
            logger.debug(f"Ignoring chunk received in terminal state {self._state.value}")
            return

        if self._state is AssemblerState.IDLE:
            self._state = AssemblerState.RECEIVING
            self.events.emit(StreamStart(chunk=chunk))

        if chunk.is_error:
            error = chunk.error
            if not isinstance(error, BaseException):
                error = BackendError(str(error))
            self._fail(error)
            return

        if chunk.content:
            self._content.append(chunk.content)
            self.events.emit(ContentDelta(delta=chunk.content))

        for fragment in chunk.tool_calls:
            self._accept_fragment(fragment)

        if chunk.is_final:
            self._finish(chunk.finish_reason)

    def reset(self) -> StreamAssembler:
        """Discard everything accumulated for the current turn."""
        self._state = AssemblerState.IDLE
        self._content = []
        self._pending = {}
        self._tool_calls = []
        self._error = None
        return self

    def _accept_fragment(self, fragment: ToolCallFragment) -> None:
        pending = self._pending.get(fragment.index)
        if pending is None:
            pending = PendingToolCall(index=fragment.index, id=fragment.id)
            self._pending[fragment.index] = pending
            self.events.emit(ToolCallStart(index=fragment.index, id=fragment.id))
        elif pending.id is None and fragment.id:
            pending.id = fragment.id

        if fragment.name:
            pending.name += fragment.name
        if fragment.arguments:
            pending.arguments += fragment.arguments

        self.events.emit(ToolCallDelta(index=fragment.index, fragment=fragment))

    def _finish(self, finish_reason: str | None) -> None:
        completed: list[tuple[int, ToolCallRequest]] = []
        for index in sorted(self._pending):
            pending = self._pending[index]
            call_id = pending.id or fallback_call_id(pending.index, pending.name, pending.arguments)
            try:
                call = ToolCallRequest.from_json(call_id, pending.name, pending.arguments)
            except MalformedToolArguments as e:
                logger.warning(f"Tool call {index} ('{pending.name}') has malformed arguments: {e.reason}")
                self._fail(e)
                return
            completed.append((index, call))

        self._pending = {}
        self._tool_calls = [call for _, call in completed]
        self._state = AssemblerState.DONE
        logger.debug(
            f"Stream finished ({finish_reason}): {len(self.content)} chars, {len(self._tool_calls)} tool calls"
        )

        for index, call in completed:
            self.events.emit(ToolCallEnd(index=index, tool_call=call))
        self.events.emit(StreamEnd(content=self.content, tool_calls=self.tool_calls))

    def _fail(self, error: BaseException) -> None:
        self._state = AssemblerState.FAILED
        self._error = error
        self._pending = {}
        self.events.emit(StreamError(error=error))
