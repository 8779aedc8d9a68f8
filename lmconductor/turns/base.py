"""
Shared machinery of the turn handlers: tool advertisement, the tool loop and
the final-answer request.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

from lmconductor.backend.base import BackendClient
from lmconductor.backend.models import WireToolCall
from lmconductor.conversation.models import ToolCallRequest, ToolDefinition, TurnOutcome
from lmconductor.conversation.state import ConversationState
from lmconductor.errors import MalformedToolArguments
from lmconductor.events.dispatcher import EventDispatcher
from lmconductor.events.types import ResponseReceived
from lmconductor.tools.executor import MALFORMED_TOOL_CALL, ToolExecutor, error_payload
from lmconductor.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class TurnHandler(ABC):
    """
    Drives one turn: request, optional tool round, final answer.

    The conversation state passed to run()/handle() is mutated in place
    (append-only). Everything else is injected so concurrent turns on
    different states stay independent.

    Args:
        backend: Completion backend client
        registry: Tools advertised to the model
        events: Dispatcher for response/error/tool events (a private one by default)
        executor: Tool executor (built from registry and events by default)
    """

    def __init__(
        self,
        backend: BackendClient,
        registry: ToolRegistry,
        events: EventDispatcher | None = None,
        executor: ToolExecutor | None = None,
    ):
        self._backend = backend
        self._registry = registry
        self._events = events or EventDispatcher()
        self._executor = executor or ToolExecutor(registry, self._events)

    @property
    def backend(self) -> BackendClient:
        return self._backend

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def events(self) -> EventDispatcher:
        return self._events

    @abstractmethod
    async def run(self, state: ConversationState, timeout: float | None = None) -> TurnOutcome:
        """Handle one turn and return its outcome."""

    async def handle(self, state: ConversationState, timeout: float | None = None) -> str:
        """Handle one turn and return the final answer text."""
        outcome = await self.run(state, timeout)
        return outcome.final_content

    def _advertised_tools(self) -> list[ToolDefinition] | None:
        tools = self._registry.list()
        return tools or None

    async def _run_tool_round(
        self,
        state: ConversationState,
        calls: Sequence[ToolCallRequest],
        rejected: Mapping[str, str] | None = None,
    ) -> None:
        """
        Execute the requested calls and append one tool message per call, in
        request order.

        Calls listed in ``rejected`` (already answered with an error payload)
        and calls without a name are not executed.
        """
        rejected = rejected or {}
        results: dict[str, str] = {}
        runnable: list[ToolCallRequest] = []
        seen: set[str] = set()

        for call in calls:
            if call.id in seen:
                logger.warning(f"Duplicate tool call id '{call.id}' in one response; its results will collide")
            seen.add(call.id)
            if call.id in rejected:
                results[call.id] = rejected[call.id]
            elif not call.name.strip():
                logger.warning(f"Received tool call {call.id} with an empty name")
                results[call.id] = error_payload(
                    MALFORMED_TOOL_CALL,
                    "Received tool call with empty name.",
                    call.name,
                    call.id,
                    details="Tool name was empty.",
                    received_arguments=call.arguments,
                )
            else:
                runnable.append(call)

        if runnable:
            results.update(await self._executor.execute_many(runnable))

        for call in calls:
            state.add_tool_message(call.id, results[call.id])

    async def _request_final_answer(
        self, state: ConversationState, timeout: float | None = None, fallback: str = ""
    ) -> str:
        """
        Second leg: send the extended transcript without tools and store the answer.

        Args:
            state: Conversation state, already holding the tool results
            timeout: Transport timeout for the request
            fallback: Returned (and not stored) when the backend sends no choice
        """
        response = await self._backend.submit(
            state.model, state.messages, None, state.options, timeout=timeout
        )
        self._events.emit(ResponseReceived(response=response))

        message = response.first_message
        if message is None:
            logger.warning("Backend returned no choice for the final answer")
            return fallback

        content = message.content or ""
        state.add_assistant_message(content)
        return content


def decode_wire_tool_calls(
    wire_calls: Sequence[WireToolCall],
) -> tuple[list[ToolCallRequest], dict[str, str]]:
    """
    Decode the tool calls of a complete response.

    Calls whose argument text is not valid JSON are kept (with empty
    arguments) so the transcript still records them, and are answered with
    a MalformedToolCall payload instead of being executed.

    Returns:
        The decoded calls and a mapping of rejected call ids to error payloads
    """
    calls: list[ToolCallRequest] = []
    rejected: dict[str, str] = {}
    for wire in wire_calls:
        try:
            calls.append(ToolCallRequest.from_json(wire.id, wire.name, wire.arguments))
        except MalformedToolArguments as e:
            logger.warning(f"Received tool call '{wire.name}' ({wire.id}) with invalid JSON arguments: {e.reason}")
            calls.append(ToolCallRequest(id=wire.id, name=wire.name, arguments={}))
            rejected[wire.id] = error_payload(
                MALFORMED_TOOL_CALL,
                f"Received tool call '{wire.name}' with invalid JSON arguments.",
                wire.name,
                wire.id,
                details=f"Arguments could not be parsed as JSON: {e.reason}",
                received_arguments=wire.arguments,
            )
    return calls, rejected
