"""
Streaming turn handler.

The first leg of the turn is streamed through a StreamAssembler; the whole
turn runs against one wall-clock budget.
"""

from __future__ import annotations

import asyncio
import logging
import time

from lmconductor.backend.base import BackendClient
from lmconductor.backend.models import StreamChunk
from lmconductor.conversation.models import TurnOutcome
from lmconductor.conversation.state import ConversationState
from lmconductor.errors import TurnTimeout
from lmconductor.events.dispatcher import EventDispatcher
from lmconductor.events.types import ContentDelta, StreamEnd, StreamError, TurnError
from lmconductor.streaming.assembler import StreamAssembler
from lmconductor.tools.executor import ToolExecutor
from lmconductor.tools.registry import ToolRegistry
from lmconductor.turns.base import TurnHandler

logger = logging.getLogger(__name__)

DEFAULT_STREAM_TIMEOUT = 60.0  # seconds


class StreamingTurnHandler(TurnHandler):
    """
    Handles a turn whose first response is streamed.

    The budget comes from the ``timeout`` argument, else the state's
    ``stream_timeout``, else ``default_timeout``. It bounds submission,
    streaming and tool execution; the final non-streaming request gets
    whatever is left of it. Waiting for the end of the stream is an
    ``asyncio.wait_for`` on an event, never a poll.

    When the budget runs out while streaming, the partial assembly is
    discarded and nothing is appended to the transcript.

    A handler owns one assembler and therefore runs one turn at a time; use
    one handler per concurrently active conversation.

    An overlapping call (``RuntimeError``) and a non-positive ``timeout``
    (``ValueError``) are rejected before the turn starts: they emit no
    ``error`` event and leave the state and assembler untouched.

    Args:
        backend: Completion backend client
        registry: Tools advertised to the model
        events: Dispatcher for response/error/tool events
        executor: Tool executor (built from registry and events by default)
        assembler: Stream assembler (a fresh one by default). Observers of
            content deltas subscribe on ``assembler.events``.
        default_timeout: Budget used when neither argument nor state sets one
    """

    def __init__(
        self,
        backend: BackendClient,
        registry: ToolRegistry,
        events: EventDispatcher | None = None,
        executor: ToolExecutor | None = None,
        assembler: StreamAssembler | None = None,
        default_timeout: float = DEFAULT_STREAM_TIMEOUT,
    ):
        super().__init__(backend, registry, events, executor)
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        self._assembler = assembler or StreamAssembler()
        self._default_timeout = default_timeout
        self._busy = False

    @property
    def assembler(self) -> StreamAssembler:
        return self._assembler

    def _resolve_timeout(self, state: ConversationState, timeout: float | None) -> float:
        if timeout is not None:
            if timeout <= 0:
                raise ValueError("timeout must be positive")
            return float(timeout)
        if state.stream_timeout is not None:
            return state.stream_timeout
        return self._default_timeout

    async def run(self, state: ConversationState, timeout: float | None = None) -> TurnOutcome:
        if self._busy:
            raise RuntimeError(
                "StreamingTurnHandler is already handling a turn; use one handler per active conversation"
            )
        budget = self._resolve_timeout(state, timeout)

        assembler = self._assembler
        assembler.reset()

        stream_finished = asyncio.Event()
        content_parts: list[str] = []

        def on_content(event: ContentDelta) -> None:
            content_parts.append(event.delta)

        def on_terminal(event: StreamEnd | StreamError) -> None:
            stream_finished.set()

        assembler.events.on(ContentDelta, on_content)
        assembler.events.on(StreamEnd, on_terminal)
        assembler.events.on(StreamError, on_terminal)

        started = time.monotonic()

        def on_chunk(chunk: StreamChunk) -> None:
            if time.monotonic() - started > budget:
                raise TurnTimeout(
                    f"Streaming turn timed out after {budget:g} seconds while processing chunks.",
                    timeout=budget,
                )
            assembler.feed(chunk)

        self._busy = True
        try:
            try:
                await asyncio.wait_for(
                    self._backend.submit_streaming(
                        state.model, state.messages, self._advertised_tools(), state.options, on_chunk
                    ),
                    timeout=budget,
                )
                if not assembler.is_terminal:
                    await asyncio.wait_for(stream_finished.wait(), timeout=budget - (time.monotonic() - started))
            except asyncio.TimeoutError as e:
                raise TurnTimeout(
                    f"Streaming turn timed out after {budget:g} seconds while waiting for the stream to end.",
                    timeout=budget,
                ) from e

            if assembler.error is not None:
                raise assembler.error

            content = "".join(content_parts)
            calls = assembler.tool_calls

            if not calls:
                state.add_assistant_message(content)
                return TurnOutcome(final_content=content)

            logger.info(f"Model requested {len(calls)} tool call(s): {', '.join(c.name for c in calls)}")
            state.add_assistant_message(content, calls)
            await self._run_tool_round(state, calls)

            remaining = budget - (time.monotonic() - started)
            if remaining <= 0:
                raise TurnTimeout(
                    f"Streaming turn timed out after {budget:g} seconds before the final answer was requested.",
                    timeout=budget,
                )
            try:
                final_content = await asyncio.wait_for(
                    self._request_final_answer(state, timeout=remaining, fallback=content), timeout=remaining
                )
            except asyncio.TimeoutError as e:
                raise TurnTimeout(
                    f"Streaming turn timed out after {budget:g} seconds while waiting for the final answer.",
                    timeout=budget,
                ) from e

            return TurnOutcome(final_content=final_content, tool_calls=calls)

        except Exception as e:
            if isinstance(e, TurnTimeout):
                assembler.reset()
            self._events.emit(TurnError(error=e))
            raise

        finally:
            self._busy = False
            assembler.events.off(ContentDelta, on_content)
            assembler.events.off(StreamEnd, on_terminal)
            assembler.events.off(StreamError, on_terminal)
