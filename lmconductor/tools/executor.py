"""
Tool executor: runs requested tool calls and turns every outcome into a string
the model can read.

Tool failures are passed back to the model as JSON error payloads instead of
being raised, so the conversation can continue and the model can explain or
recover. Only the turn handlers decide what aborts a turn.
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel

from lmconductor.conversation.models import ToolCallRequest
from lmconductor.errors import ToolExecutionFailed, ToolNotFound
from lmconductor.events.dispatcher import EventDispatcher
from lmconductor.events.types import ToolError, ToolExecuted, ToolExecuting
from lmconductor.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

TOOL_NOT_FOUND = "ToolNotFound"
UNEXPECTED_TOOL_ERROR = "UnexpectedToolError"
MALFORMED_TOOL_CALL = "MalformedToolCall"


def error_payload(
    kind: str,
    message: str,
    tool_name: str,
    tool_call_id: str,
    details: Any = None,
    **extra: Any,
) -> str:
    """Render the JSON error object returned to the model in place of a result."""
    payload: dict[str, Any] = {
        "error": kind,
        "message": message,
        "tool_name": tool_name,
        "tool_call_id": tool_call_id,
    }
    if details is not None:
        payload["details"] = details
    payload.update(extra)
    return json.dumps(payload, default=str)


def serialize_result(result: Any) -> str:
    """Strings pass through; pydantic models are dumped; anything else is JSON-encoded."""
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    return json.dumps(result)


class ToolExecutor:
    """
    Executes tool calls against a registry, emitting lifecycle events.

    Args:
        registry: Tools available to the model
        events: Dispatcher receiving tool.executing / tool.executed / tool.error
    """

    def __init__(self, registry: ToolRegistry, events: EventDispatcher):
        self._registry = registry
        self._events = events

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def execute(self, call: ToolCallRequest) -> str:
        """
        Run one tool call.

        Never raises for tool-level failures: missing tools, declared
        failures and unexpected exceptions all come back as JSON error
        payloads. Exceptions raised by event listeners do propagate.
        """
        self._events.emit(ToolExecuting(tool_name=call.name, arguments=call.arguments, id=call.id))

        if not self._registry.has(call.name):
            logger.warning(f"Model requested unknown tool '{call.name}' (call {call.id})")
            error = ToolNotFound(call.name)
            self._emit_error(call, TOOL_NOT_FOUND, str(error), exception=error)
            return error_payload(TOOL_NOT_FOUND, str(error), call.name, call.id)

        logger.debug(f"Executing tool '{call.name}' (call {call.id}) with arguments: {call.arguments}")
        try:
            result = self._registry.invoke(call.name, call.arguments)
            if inspect.isawaitable(result):
                result = await result
            output = serialize_result(result)
        except ToolExecutionFailed as e:
            logger.info(f"Tool '{call.name}' reported {e.kind}: {e.message}")
            self._emit_error(call, e.kind, e.message, details=e.details, exception=e)
            return error_payload(e.kind, e.message, call.name, call.id, details=e.details)
        except Exception as e:
            logger.error(f"Tool '{call.name}' failed unexpectedly: {e}", exc_info=True)
            message = f"{type(e).__name__}: {e}"
            self._emit_error(call, UNEXPECTED_TOOL_ERROR, message, exception=e)
            return error_payload(UNEXPECTED_TOOL_ERROR, message, call.name, call.id)

        self._events.emit(
            ToolExecuted(tool_name=call.name, arguments=call.arguments, id=call.id, result=result)
        )
        logger.debug(f"Tool '{call.name}' succeeded: {output[:100]}")
        return output

    async def execute_many(self, calls: Sequence[ToolCallRequest]) -> dict[str, str]:
        """
        Run calls one after another in request order; results keyed by call id.

        Every call runs, but calls sharing an id keep only the last result.
        """
        results: dict[str, str] = {}
        for call in calls:
            if call.id in results:
                logger.warning(f"Duplicate tool call id '{call.id}'; the earlier result is overwritten")
            results[call.id] = await self.execute(call)
        return results

    def _emit_error(
        self,
        call: ToolCallRequest,
        kind: str,
        message: str,
        details: Any = None,
        exception: BaseException | None = None,
    ) -> None:
        self._events.emit(
            ToolError(
                tool_name=call.name,
                arguments=call.arguments,
                id=call.id,
                kind=kind,
                message=message,
                details=details,
                exception=exception,
            )
        )
