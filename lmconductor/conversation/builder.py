"""Fluent construction of a Conversation with defaults from Settings."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from lmconductor.backend.base import BackendClient
from lmconductor.backend.litellm_client import LiteLLMBackend
from lmconductor.config.settings import Settings, get_settings
from lmconductor.conversation.conversation import Conversation
from lmconductor.conversation.state import ConversationState
from lmconductor.events.dispatcher import EventDispatcher
from lmconductor.events.types import Event
from lmconductor.tools.registry import ToolImplementation, ToolRegistry
from lmconductor.turns.base import TurnHandler
from lmconductor.turns.non_streaming import NonStreamingTurnHandler
from lmconductor.turns.streaming import StreamingTurnHandler

logger = logging.getLogger(__name__)


class ConversationBuilder:
    """
    Builds a Conversation.

    Anything not set explicitly comes from Settings: the model from
    ``llm.model``, streaming and its budget from ``turn``. Without an explicit
    backend a LiteLLMBackend is created from ``llm``.

    Example:
        conversation = (
            ConversationBuilder()
            .with_model("openai/gpt-4o-mini")
            .with_system_prompt("You are terse.")
            .with_tool("get_weather", get_weather, WEATHER_SCHEMA)
            .build()
        )

    Args:
        settings: Source of defaults (the global settings by default)
    """

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()
        self._model: str | None = None
        self._options: dict[str, Any] = {}
        self._system_prompt: str | None = None
        self._streaming: bool | None = None
        self._stream_timeout: float | None = None
        self._registry: ToolRegistry | None = None
        self._backend: BackendClient | None = None
        self._listeners: list[tuple[type[Event] | str, Callable[[Event], None]]] = []

    def with_model(self, model: str) -> ConversationBuilder:
        self._model = model
        return self

    def with_options(self, options: Mapping[str, Any]) -> ConversationBuilder:
        """Merge backend options (temperature, max_tokens, ...) into those already set."""
        self._options.update(options)
        return self

    def with_system_prompt(self, prompt: str) -> ConversationBuilder:
        self._system_prompt = prompt
        return self

    def with_streaming(self, streaming: bool = True) -> ConversationBuilder:
        self._streaming = streaming
        return self

    def with_stream_timeout(self, seconds: float) -> ConversationBuilder:
        if seconds <= 0:
            raise ValueError("stream timeout must be positive")
        self._stream_timeout = seconds
        return self

    def with_tool(
        self,
        name: str,
        implementation: ToolImplementation,
        parameters: Mapping[str, Any] | None = None,
        description: str | None = None,
    ) -> ConversationBuilder:
        """Register a tool on the builder's registry (created on first use)."""
        if self._registry is None:
            self._registry = ToolRegistry()
        self._registry.register(name, implementation, parameters, description)
        return self

    def with_registry(self, registry: ToolRegistry) -> ConversationBuilder:
        """Use an existing registry. Tools added later with with_tool() go into it."""
        self._registry = registry
        return self

    def with_backend(self, backend: BackendClient) -> ConversationBuilder:
        self._backend = backend
        return self

    def on(self, event: type[Event] | str, listener: Callable[[Event], None]) -> ConversationBuilder:
        """Subscribe a listener once the conversation is built."""
        self._listeners.append((event, listener))
        return self

    def build(self) -> Conversation:
        """
        Create the conversation.

        Returns:
            A Conversation with its own state, dispatcher and turn handler
        """
        model = self._model or self._settings.llm.model
        streaming = self._streaming if self._streaming is not None else self._settings.turn.streaming
        registry = self._registry if self._registry is not None else ToolRegistry()
        backend = self._backend or LiteLLMBackend(self._settings.llm)
        events = EventDispatcher()

        handler: TurnHandler
        if streaming:
            handler = StreamingTurnHandler(
                backend, registry, events, default_timeout=self._settings.turn.stream_timeout
            )
        else:
            handler = NonStreamingTurnHandler(backend, registry, events)

        state = ConversationState(model, self._options, stream_timeout=self._stream_timeout)
        if self._system_prompt:
            state.add_system_message(self._system_prompt)

        conversation = Conversation(state, handler)
        for event, listener in self._listeners:
            conversation.on(event, listener)

        logger.debug(f"Built conversation: model={model}, streaming={streaming}, tools={len(registry)}")
        return conversation
