"""
Decoded backend payloads.

The backend client converts provider responses into these shapes; nothing
past the client boundary sees a provider object.
"""

from __future__ import annotations

import hashlib
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def fallback_call_id(index: int, name: str | None, arguments: str | None) -> str:
    """Stable id for a tool call the backend sent without one."""
    digest = hashlib.sha1(f"{index}:{name or ''}:{arguments or ''}".encode()).hexdigest()
    return f"call_{index}_{digest[:12]}"


class WireToolCall(BaseModel):
    """A tool call exactly as a non-streaming response carried it (arguments undecoded)."""

    id: str
    name: str = ""
    arguments: str = ""


class ResponseMessage(BaseModel):
    """The assistant message of one response choice."""

    content: str | None = None
    tool_calls: list[WireToolCall] = Field(default_factory=list)


class Choice(BaseModel):
    index: int = 0
    message: ResponseMessage = Field(default_factory=ResponseMessage)
    finish_reason: str | None = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class Response(BaseModel):
    """A complete (non-streaming) backend response."""

    id: str | None = None
    model: str = ""
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)

    @property
    def first_message(self) -> ResponseMessage | None:
        return self.choices[0].message if self.choices else None


class ToolCallFragment(BaseModel):
    """
    One partial piece of a streamed tool call.

    Fragments sharing an ``index`` belong to the same call; their ``name`` and
    ``arguments`` text are concatenated in arrival order.
    """

    index: int
    id: str | None = None
    name: str | None = None
    arguments: str | None = None

    model_config = ConfigDict(frozen=True)


class StreamChunk(BaseModel):
    """
    One unit of a streamed response.

    Carries any combination of a text delta and tool-call fragments, and may
    signal the end of the turn (``finish_reason``) or a backend failure
    (``error``).
    """

    content: str | None = None
    tool_calls: list[ToolCallFragment] = Field(default_factory=list)
    finish_reason: str | None = None
    error: Any = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def is_final(self) -> bool:
        return self.finish_reason is not None

    @property
    def is_error(self) -> bool:
        return self.error is not None
