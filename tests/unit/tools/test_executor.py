"""
Unit tests for ToolExecutor.

Every tool outcome (success, declared failure, missing tool, unexpected
exception) must come back as a string the model can read, with matching
lifecycle events.
"""

import json
import logging
from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

from lmconductor.conversation.models import ToolCallRequest
from lmconductor.errors import ToolExecutionFailed, ToolInvalidInput
from lmconductor.events.dispatcher import EventDispatcher
from lmconductor.events.types import ToolError, ToolExecuted, ToolExecuting
from lmconductor.tools.executor import ToolExecutor, error_payload, serialize_result
from lmconductor.tools.registry import ToolRegistry


class Forecast(BaseModel):
    temp: int


@pytest.fixture
def registry():
    return ToolRegistry()


@pytest.fixture
def events():
    return EventDispatcher()


@pytest.fixture
def recorded(events):
    """Collect every tool event in emission order."""
    seen = []
    for event_type in (ToolExecuting, ToolExecuted, ToolError):
        events.on(event_type, seen.append)
    return seen


@pytest.fixture
def executor(registry, events):
    return ToolExecutor(registry, events)


def _call(name="get_weather", arguments=None, call_id="call_1"):
    return ToolCallRequest(id=call_id, name=name, arguments=arguments or {})


class TestSuccess:

    @pytest.mark.asyncio
    async def test_sync_tool_result_is_json(self, registry, executor, recorded):
        registry.register("get_weather", lambda args: {"temp": 20, "city": args["city"]})

        output = await executor.execute(_call(arguments={"city": "Paris"}))

        assert json.loads(output) == {"temp": 20, "city": "Paris"}
        assert [type(e) for e in recorded] == [ToolExecuting, ToolExecuted]
        assert recorded[1].result == {"temp": 20, "city": "Paris"}
        assert recorded[1].id == "call_1"

    @pytest.mark.asyncio
    async def test_async_tool_is_awaited(self, registry, executor):
        async def get_weather(args):
            return {"temp": 20}

        registry.register("get_weather", get_weather)
        assert json.loads(await executor.execute(_call())) == {"temp": 20}

    @pytest.mark.asyncio
    async def test_string_result_passes_through(self, registry, executor):
        registry.register("get_weather", lambda args: "sunny")
        assert await executor.execute(_call()) == "sunny"

    @pytest.mark.asyncio
    async def test_pydantic_result_is_dumped(self, registry, executor):
        registry.register("get_weather", lambda args: Forecast(temp=20))
        assert json.loads(await executor.execute(_call())) == {"temp": 20}


class TestFailures:

    @pytest.mark.asyncio
    async def test_unknown_tool(self, executor, recorded):
        output = await executor.execute(_call(name="unknown_tool", call_id="call_9"))

        payload = json.loads(output)
        assert payload["error"] == "ToolNotFound"
        assert payload["tool_name"] == "unknown_tool"
        assert payload["tool_call_id"] == "call_9"
        assert "unknown_tool" in payload["message"]
        assert [type(e) for e in recorded] == [ToolExecuting, ToolError]
        assert recorded[1].kind == "ToolNotFound"

    @pytest.mark.asyncio
    async def test_declared_failure_keeps_kind_and_details(self, registry, executor, recorded):
        def get_weather(args):
            raise ToolInvalidInput("city is required", details={"field": "city"})

        registry.register("get_weather", get_weather)
        payload = json.loads(await executor.execute(_call()))

        assert payload["error"] == "ToolInvalidInput"
        assert payload["message"] == "city is required"
        assert payload["details"] == {"field": "city"}
        assert recorded[-1].kind == "ToolInvalidInput"
        assert isinstance(recorded[-1].exception, ToolInvalidInput)

    @pytest.mark.asyncio
    async def test_custom_declared_failure_kind(self, registry, executor):
        class RateLimited(ToolExecutionFailed):
            pass

        def get_weather(args):
            raise RateLimited("slow down")

        registry.register("get_weather", get_weather)
        payload = json.loads(await executor.execute(_call()))
        assert payload["error"] == "RateLimited"
        assert "details" not in payload

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, registry, executor, recorded):
        def get_weather(args):
            raise KeyError("city")

        registry.register("get_weather", get_weather)
        payload = json.loads(await executor.execute(_call()))

        assert payload["error"] == "UnexpectedToolError"
        assert payload["message"].startswith("KeyError")
        assert recorded[-1].kind == "UnexpectedToolError"

    @pytest.mark.asyncio
    async def test_unserializable_result_is_unexpected_error(self, registry, executor):
        registry.register("get_weather", lambda args: object())
        payload = json.loads(await executor.execute(_call()))
        assert payload["error"] == "UnexpectedToolError"

    @pytest.mark.asyncio
    async def test_listener_exception_propagates(self, registry, events, executor):
        registry.register("get_weather", lambda args: {})
        events.on(ToolExecuting, MagicMock(side_effect=RuntimeError("listener bug")))

        with pytest.raises(RuntimeError, match="listener bug"):
            await executor.execute(_call())


class TestExecuteMany:

    @pytest.mark.asyncio
    async def test_results_keyed_by_id_in_order(self, registry, executor):
        order = []

        def record(args):
            order.append(args["n"])
            return args["n"]

        registry.register("record", record)
        calls = [_call("record", {"n": n}, f"call_{n}") for n in (1, 2, 3)]

        results = await executor.execute_many(calls)

        assert order == [1, 2, 3]
        assert list(results) == ["call_1", "call_2", "call_3"]
        assert results["call_2"] == "2"

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_later_calls(self, registry, executor):
        registry.register("ok", lambda args: "fine")
        results = await executor.execute_many([_call("missing", call_id="a"), _call("ok", call_id="b")])

        assert json.loads(results["a"])["error"] == "ToolNotFound"
        assert results["b"] == "fine"

    @pytest.mark.asyncio
    async def test_duplicate_ids_are_logged(self, registry, executor, caplog):
        registry.register("ok", lambda args: args["n"])
        calls = [_call("ok", {"n": 1}, "dup"), _call("ok", {"n": 2}, "dup")]

        with caplog.at_level(logging.WARNING, logger="lmconductor.tools.executor"):
            results = await executor.execute_many(calls)

        assert results == {"dup": "2"}
        assert "Duplicate tool call id 'dup'" in caplog.text


def test_error_payload_is_json_with_error_field():
    payload = json.loads(error_payload("X", "boom", "t", "c1", details=[1], extra_field="y"))
    assert payload == {
        "error": "X",
        "message": "boom",
        "tool_name": "t",
        "tool_call_id": "c1",
        "details": [1],
        "extra_field": "y",
    }


def test_serialize_result_list():
    assert json.loads(serialize_result([1, "a"])) == [1, "a"]
