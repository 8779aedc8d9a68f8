"""
Exception hierarchy.

Tool-level failures (ToolNotFound, ToolExecutionFailed, unexpected tool
exceptions) are absorbed by the ToolExecutor and reported to the model as
JSON error payloads. Everything else aborts the turn.
"""

from __future__ import annotations

from typing import Any


class ConductorError(Exception):
    """Base class for all errors raised by lmconductor."""


class InvalidSchema(ConductorError):
    """A tool's parameter schema is structurally invalid."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Invalid parameter schema for tool '{tool_name}': {message}")
        self.tool_name = tool_name


class ToolNotFound(ConductorError):
    """The requested tool is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' not found")
        self.name = name


class ToolExecutionFailed(ConductorError):
    """
    A declared tool failure.

    Tool implementations raise this (or a subclass) to report a known failure
    to the model with a message and optional structured details. The error
    kind reported in the payload is the class name.
    """

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def kind(self) -> str:
        return type(self).__name__


class ToolInvalidInput(ToolExecutionFailed):
    """A tool rejected its input arguments."""


class MalformedToolArguments(ConductorError):
    """Tool call arguments could not be decoded as a JSON object or array."""

    def __init__(self, tool_name: str, arguments: str, reason: str):
        super().__init__(
            f"Arguments for tool call '{tool_name}' are not valid JSON: {reason}"
        )
        self.tool_name = tool_name
        self.arguments = arguments
        self.reason = reason


class TurnTimeout(ConductorError):
    """The wall-clock budget of a turn was exceeded."""

    def __init__(self, message: str = "The conversation turn timed out.", timeout: float | None = None):
        super().__init__(message)
        self.timeout = timeout


class BackendError(ConductorError):
    """
    The completion backend failed.

    Raised by the backend client; turn handlers pass it through unchanged.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause
