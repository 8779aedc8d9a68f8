"""
Conversation facade.

Binds one ConversationState to one turn handler so callers can hold a
multi-turn chat without wiring the pieces themselves:

    conversation.add_user_message(...) / conversation.send(text)
                          ↓
          TurnHandler.run(state)  →  final text
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from lmconductor.conversation.models import Message, TurnOutcome
from lmconductor.conversation.state import ConversationState
from lmconductor.events.dispatcher import EventDispatcher
from lmconductor.events.types import ASSEMBLER_EVENTS, Event
from lmconductor.turns.base import TurnHandler
from lmconductor.turns.streaming import StreamingTurnHandler

logger = logging.getLogger(__name__)


class Conversation:
    """
    A single conversation thread.

    Args:
        state: Transcript and per-turn configuration
        handler: Turn handler (streaming or not) that drives each turn
    """

    def __init__(self, state: ConversationState, handler: TurnHandler):
        self._state = state
        self._handler = handler

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def handler(self) -> TurnHandler:
        return self._handler

    @property
    def streaming(self) -> bool:
        return isinstance(self._handler, StreamingTurnHandler)

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._state.messages

    @property
    def events(self) -> EventDispatcher:
        return self._handler.events

    def add_system_message(self, content: str) -> Conversation:
        self._state.add_system_message(content)
        return self

    def add_user_message(self, content: str) -> Conversation:
        self._state.add_user_message(content)
        return self

    async def send(self, text: str, timeout: float | None = None) -> str:
        """
        Append a user message and run a turn.

        Args:
            text: User message content
            timeout: Turn timeout in seconds (see the handler for its meaning)

        Returns:
            The assistant's final answer
        """
        self._state.add_user_message(text)
        return await self.respond(timeout)

    async def respond(self, timeout: float | None = None) -> str:
        """Run a turn on the transcript as it stands."""
        outcome = await self.run(timeout)
        return outcome.final_content

    async def run(self, timeout: float | None = None) -> TurnOutcome:
        """Run a turn and return the full outcome, including any tool calls."""
        logger.info(f"Running turn: model={self._state.model}, messages={len(self._state)}")
        outcome = await self._handler.run(self._state, timeout)
        logger.info(
            f"Turn complete: {len(outcome.final_content)} chars, {len(outcome.tool_calls)} tool calls"
        )
        return outcome

    def on(self, event: type[Event] | str, listener: Callable[[Event], None]) -> Conversation:
        """
        Subscribe to an event.

        Streaming events (content deltas, tool-call fragments, stream start/end)
        are routed to the streaming handler's assembler; everything else goes
        to the handler's dispatcher. Streaming events are never emitted for a
        non-streaming conversation.
        """
        name = event if isinstance(event, str) else event.name
        if name in ASSEMBLER_EVENTS:
            if isinstance(self._handler, StreamingTurnHandler):
                self._handler.assembler.events.on(event, listener)
            else:
                logger.debug(f"Listener for '{name}' will not fire on a non-streaming conversation")
                self._handler.events.on(event, listener)
        else:
            self._handler.events.on(event, listener)
        return self

    def reset(self) -> Conversation:
        """Clear the transcript; configuration and listeners are kept."""
        self._state.reset()
        return self

    def __repr__(self) -> str:
        return f"Conversation(model={self._state.model!r}, streaming={self.streaming}, messages={len(self._state)})"
