"""
Canonical conversation data model.

Every layer of the package (state, tools, turn handlers, backend adapters)
speaks these types. Backend-specific payloads are converted into them at the
client boundary (see lmconductor.backend).
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lmconductor.errors import MalformedToolArguments


class Role(str, Enum):
    """Author of a transcript message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCallRequest(BaseModel):
    """A backend-issued request to invoke a registered tool."""

    id: str = Field(description="Backend-assigned call identifier")
    name: str = Field(description="Name of the requested tool")
    arguments: dict[str, Any] | list[Any] = Field(
        default_factory=dict, description="Decoded JSON arguments"
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_json(cls, id: str, name: str, arguments: str | None) -> ToolCallRequest:
        """
        Build a request from raw JSON argument text.

        Empty (or whitespace-only) text decodes to an empty mapping. Anything
        that is not a JSON object or array is rejected.

        Raises:
            MalformedToolArguments: If the text cannot be decoded
        """
        text = (arguments or "").strip()
        if not text:
            return cls(id=id, name=name, arguments={})

        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedToolArguments(name, arguments or "", str(e)) from e

        if not isinstance(decoded, (dict, list)):
            raise MalformedToolArguments(
                name,
                arguments or "",
                f"expected a JSON object or array, got {type(decoded).__name__}",
            )
        return cls(id=id, name=name, arguments=decoded)

    @property
    def arguments_json(self) -> str:
        """Arguments rendered back to JSON text for the wire."""
        return json.dumps(self.arguments)

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments_json},
        }


class Message(BaseModel):
    """
    One transcript entry.

    Messages are immutable once created; the transcript only ever grows
    (see ConversationState).
    """

    role: Role
    content: str | None = None
    tool_calls: list[ToolCallRequest] | None = None
    tool_call_id: str | None = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_tool_reference(self) -> Message:
        if self.role is Role.TOOL and not self.tool_call_id:
            raise ValueError("A tool message requires a tool_call_id")
        return self

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str | None, tool_calls: list[ToolCallRequest] | None = None) -> Message:
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tool_calls or None)

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> Message:
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id)

    @property
    def has_payload(self) -> bool:
        """True unless both content and tool calls are absent."""
        return self.content is not None or bool(self.tool_calls)

    def to_wire(self) -> dict[str, Any]:
        """Render the OpenAI-style message dict accepted by LiteLLM."""
        data: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data


class ToolDefinition(BaseModel):
    """Published description of a registered tool."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})

    model_config = ConfigDict(frozen=True)

    def to_wire(self) -> dict[str, Any]:
        """
        Render the OpenAI tool format LiteLLM expects:
            {"type": "function", "function": {"name": ..., "description": ..., "parameters": ...}}
        """
        function: dict[str, Any] = {"name": self.name, "parameters": self.parameters}
        if self.description:
            function["description"] = self.description
        return {"type": "function", "function": function}


class TurnOutcome(BaseModel):
    """Result of one handled turn."""

    final_content: str = ""
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
