"""
Conversation state: the append-only transcript of one conversation thread plus
its fixed per-turn configuration.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from lmconductor.conversation.models import Message, Role, ToolCallRequest

logger = logging.getLogger(__name__)

# Keys that steer the turn handlers rather than the backend request.
STREAM_FLAG = "stream"
STREAM_TIMEOUT = "stream_timeout"


class ConversationState:
    """
    Holds the configuration and transcript of a single conversation.

    The model id and options are fixed at construction. The transcript only
    grows: messages are appended by the caller or by a turn handler and are
    removed only by reset().

    Options never carry transport-only keys. A ``stream`` flag is discarded
    (streaming is chosen by picking a turn handler), and ``stream_timeout``
    becomes the per-state timeout override used by the streaming handler.

    A state instance must not be shared between concurrently running turns.

    Args:
        model: Backend model identifier
        options: Sampling options forwarded with every request (temperature, ...)
        messages: Pre-existing transcript
        stream_timeout: Per-state override of the streaming turn budget (seconds)
    """

    def __init__(
        self,
        model: str,
        options: Mapping[str, Any] | None = None,
        messages: Iterable[Message] | None = None,
        stream_timeout: float | None = None,
    ):
        if not model:
            raise ValueError("model cannot be empty")

        cleaned = dict(options or {})
        if STREAM_FLAG in cleaned:
            cleaned.pop(STREAM_FLAG)
            logger.debug("Dropped 'stream' from conversation options; streaming is chosen per handler")
        if STREAM_TIMEOUT in cleaned:
            option_timeout = cleaned.pop(STREAM_TIMEOUT)
            if stream_timeout is None and option_timeout is not None:
                stream_timeout = float(option_timeout)

        if stream_timeout is not None and stream_timeout <= 0:
            raise ValueError("stream_timeout must be positive")

        self._model = model
        self._options: Mapping[str, Any] = MappingProxyType(cleaned)
        self._stream_timeout = stream_timeout
        self._messages: list[Message] = []
        self.add_messages(messages or [])

    @property
    def model(self) -> str:
        return self._model

    @property
    def options(self) -> Mapping[str, Any]:
        """Read-only view of the backend options."""
        return self._options

    @property
    def stream_timeout(self) -> float | None:
        return self._stream_timeout

    @property
    def messages(self) -> tuple[Message, ...]:
        """Snapshot of the transcript in order."""
        return tuple(self._messages)

    @property
    def last_message(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def add_message(self, message: Message) -> None:
        """
        Append a message to the transcript.

        Raises:
            ValueError: If an assistant message has neither content nor tool
                calls, or a tool message answers a call no earlier assistant
                message made
        """
        if message.role is Role.ASSISTANT and not message.has_payload:
            raise ValueError("An assistant message needs content or tool calls")
        if message.role is Role.TOOL and not self._has_tool_call(message.tool_call_id):
            raise ValueError(
                f"Tool message references unknown tool call id '{message.tool_call_id}'"
            )
        self._messages.append(message)

    def add_messages(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.add_message(message)

    def add_system_message(self, content: str) -> None:
        self.add_message(Message.system(content))

    def add_user_message(self, content: str) -> None:
        self.add_message(Message.user(content))

    def add_assistant_message(
        self, content: str | None, tool_calls: list[ToolCallRequest] | None = None
    ) -> None:
        self.add_message(Message.assistant(content, tool_calls))

    def add_tool_message(self, tool_call_id: str, content: str) -> None:
        self.add_message(Message.tool(tool_call_id, content))

    def reset(self) -> None:
        """Clear the transcript. Model and options are kept."""
        self._messages.clear()

    def _has_tool_call(self, tool_call_id: str | None) -> bool:
        return any(
            call.id == tool_call_id
            for message in self._messages
            if message.role is Role.ASSISTANT and message.tool_calls
            for call in message.tool_calls
        )

    def __repr__(self) -> str:
        return f"ConversationState(model={self._model!r}, messages={len(self._messages)})"
