"""Non-streaming turn handler."""

from __future__ import annotations

import logging

from lmconductor.conversation.models import TurnOutcome
from lmconductor.conversation.state import ConversationState
from lmconductor.events.types import ResponseReceived, TurnError
from lmconductor.turns.base import TurnHandler, decode_wire_tool_calls

logger = logging.getLogger(__name__)


class NonStreamingTurnHandler(TurnHandler):
    """
    Handles a turn with complete (non-incremental) responses.

    1. Send the transcript, advertising registered tools
    2. Store the assistant reply
    3. If it requested tools: run them, store their results, and ask again
       without tools for the final answer

    Tool failures are answered to the model as error payloads. Any other
    failure emits an ``error`` event and is re-raised unchanged.

    ``timeout`` is forwarded to the backend as the per-request transport
    timeout.
    """

    async def run(self, state: ConversationState, timeout: float | None = None) -> TurnOutcome:
        try:
            response = await self._backend.submit(
                state.model, state.messages, self._advertised_tools(), state.options, timeout=timeout
            )
            self._events.emit(ResponseReceived(response=response))

            message = response.first_message
            if message is None or (not message.content and not message.tool_calls):
                logger.warning("Backend returned no content and no tool calls")
                return TurnOutcome()

            calls, rejected = decode_wire_tool_calls(message.tool_calls)
            state.add_assistant_message(message.content, calls or None)

            if not calls:
                return TurnOutcome(final_content=message.content or "")

            logger.info(f"Model requested {len(calls)} tool call(s): {', '.join(c.name for c in calls)}")
            await self._run_tool_round(state, calls, rejected)

            final_content = await self._request_final_answer(state, timeout=timeout)
            return TurnOutcome(final_content=final_content, tool_calls=calls)

        except Exception as e:
            self._events.emit(TurnError(error=e))
            raise
