"""
Tool registry: maps tool names to implementations and published schemas.

Registration validates the parameter schema up front so a malformed tool is
rejected at setup time rather than confusing the model mid-conversation.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from lmconductor.conversation.models import ToolDefinition
from lmconductor.errors import InvalidSchema, ToolNotFound

logger = logging.getLogger(__name__)

ToolImplementation = Callable[[dict[str, Any]], Any]

EMPTY_PARAMETERS: dict[str, Any] = {"type": "object", "properties": {}}


@dataclass(frozen=True)
class RegisteredTool:
    definition: ToolDefinition
    implementation: ToolImplementation


def validate_parameters(name: str, parameters: Mapping[str, Any]) -> None:
    """
    Check a tool's parameter schema.

    The schema must be valid JSON Schema, every property definition must
    declare a ``type``, and every ``required`` entry must name a property.

    Raises:
        InvalidSchema: On the first violation found
    """
    if not isinstance(parameters, Mapping):
        raise InvalidSchema(name, f"expected a mapping, got {type(parameters).__name__}")

    try:
        Draft202012Validator.check_schema(dict(parameters))
    except SchemaError as e:
        raise InvalidSchema(name, e.message) from e

    properties = parameters.get("properties", {})
    if not isinstance(properties, Mapping):
        raise InvalidSchema(name, "'properties' must be a mapping")

    for prop_name, prop_schema in properties.items():
        if not isinstance(prop_schema, Mapping) or "type" not in prop_schema:
            raise InvalidSchema(name, f"property '{prop_name}' does not declare a type")

    for required in parameters.get("required", []):
        if required not in properties:
            raise InvalidSchema(name, f"required property '{required}' is not defined")


class ToolRegistry:
    """
    Registry of caller-supplied tools.

    Lookups are read-only and may be shared by concurrent turns; register
    tools during setup, not while turns are running.
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register(
        self,
        name: str,
        implementation: ToolImplementation,
        parameters: Mapping[str, Any] | None = None,
        description: str | None = None,
    ) -> ToolRegistry:
        """
        Register (or replace) a tool.

        Args:
            name: Tool name the model will call
            implementation: Callable receiving the decoded arguments mapping;
                may return an awaitable
            parameters: JSON Schema of the arguments object
            description: Human-readable description advertised to the model

        Raises:
            InvalidSchema: If the parameter schema is malformed
        """
        if not name:
            raise InvalidSchema(name, "tool name cannot be empty")
        if not callable(implementation):
            raise TypeError(f"Implementation for tool '{name}' is not callable")

        schema = dict(parameters) if parameters is not None else dict(EMPTY_PARAMETERS)
        validate_parameters(name, schema)

        if name in self._tools:
            logger.debug(f"Replacing previously registered tool '{name}'")

        self._tools[name] = RegisteredTool(
            definition=ToolDefinition(name=name, description=description or "", parameters=schema),
            implementation=implementation,
        )
        return self

    def tool(
        self,
        name: str | None = None,
        parameters: Mapping[str, Any] | None = None,
        description: str | None = None,
    ) -> Callable[[ToolImplementation], ToolImplementation]:
        """
        Decorator form of register().

        The tool name defaults to the function name and the description to
        its docstring.
        """

        def decorator(func: ToolImplementation) -> ToolImplementation:
            self.register(
                name or func.__name__,
                func,
                parameters,
                description if description is not None else inspect.getdoc(func),
            )
            return func

        return decorator

    def unregister(self, name: str) -> None:
        if name not in self._tools:
            raise ToolNotFound(name)
        del self._tools[name]

    def has(self, name: str) -> bool:
        return name in self._tools

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def get(self, name: str) -> ToolDefinition:
        """
        Raises:
            ToolNotFound: If no tool has that name
        """
        try:
            return self._tools[name].definition
        except KeyError:
            raise ToolNotFound(name) from None

    def invoke(self, name: str, arguments: dict[str, Any] | list[Any]) -> Any:
        """
        Call a tool and return its raw result.

        The result is whatever the implementation returned; coroutine
        implementations return an awaitable the caller must await.

        Raises:
            ToolNotFound: If no tool has that name
        """
        try:
            entry = self._tools[name]
        except KeyError:
            raise ToolNotFound(name) from None
        return entry.implementation(arguments)

    def list(self) -> list[ToolDefinition]:
        """Tool definitions in registration order."""
        return [entry.definition for entry in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)
