"""
LiteLLM backend client.

Talks to any provider LiteLLM can route to (OpenAI, Anthropic, Ollama, LM
Studio and other OpenAI-compatible servers) and converts its responses into
lmconductor.backend.models. Transport, TLS and provider-level retries stay
with LiteLLM; this module only maps payloads and failures.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from litellm import acompletion
from pydantic import ValidationError

from lmconductor.backend.base import BackendClient, ChunkCallback
from lmconductor.backend.models import (
    Choice,
    Response,
    ResponseMessage,
    StreamChunk,
    ToolCallFragment,
    Usage,
    WireToolCall,
    fallback_call_id,
)
from lmconductor.config.settings import LLMSettings, get_settings
from lmconductor.conversation.models import Message, ToolDefinition
from lmconductor.errors import BackendError

logger = logging.getLogger(__name__)


class LiteLLMBackend(BackendClient):
    """
    BackendClient implementation on top of ``litellm.acompletion``.

    Credentials and default sampling parameters come from LLMSettings;
    per-conversation options override the defaults key by key.

    Args:
        settings: Backend configuration (defaults to the global settings)
    """

    def __init__(self, settings: LLMSettings | None = None):
        self._settings = settings or get_settings().llm

    def _build_kwargs(
        self,
        model: str,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] | None,
        options: Mapping[str, Any],
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [message.to_wire() for message in messages],
        }
        if self._settings.api_key:
            kwargs["api_key"] = self._settings.api_key
        if self._settings.api_base:
            kwargs["api_base"] = self._settings.api_base
        if self._settings.max_tokens is not None:
            kwargs["max_tokens"] = self._settings.max_tokens
        if self._settings.temperature is not None:
            kwargs["temperature"] = self._settings.temperature

        kwargs.update(options)

        # Omit the key entirely rather than sending an empty list
        if tools:
            kwargs["tools"] = [tool.to_wire() for tool in tools]
        return kwargs

    async def submit(
        self,
        model: str,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] | None,
        options: Mapping[str, Any],
        timeout: float | None = None,
    ) -> Response:
        kwargs = self._build_kwargs(model, messages, tools, options)
        request_timeout = timeout if timeout is not None else self._settings.request_timeout
        if request_timeout is not None:
            kwargs["timeout"] = request_timeout

        logger.debug(
            f"Submitting request: model={model}, messages={len(messages)}, tools={len(tools) if tools else 0}"
        )
        try:
            raw = await acompletion(**kwargs)
        except Exception as e:
            raise BackendError(f"LLM API call failed: {e}", cause=e) from e

        try:
            response = self._convert_response(raw)
        except (AttributeError, TypeError, ValidationError) as e:
            raise BackendError(f"Unexpected LLM response shape: {e}", cause=e) from e

        logger.debug(
            f"Response received - model: {response.model}, choices: {len(response.choices)}, "
            f"tokens: {response.usage.total_tokens}"
        )
        return response

    async def submit_streaming(
        self,
        model: str,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] | None,
        options: Mapping[str, Any],
        on_chunk: ChunkCallback,
    ) -> None:
        kwargs = self._build_kwargs(model, messages, tools, options)
        kwargs["stream"] = True

        logger.debug(
            f"Submitting streaming request: model={model}, messages={len(messages)}, "
            f"tools={len(tools) if tools else 0}"
        )
        try:
            stream = await acompletion(**kwargs)
        except Exception as e:
            raise BackendError(f"LLM streaming call failed: {e}", cause=e) from e

        finished = False
        iterator = stream.__aiter__()
        try:
            while True:
                # Only failures of the stream itself become error chunks;
                # exceptions raised by on_chunk must reach the caller untouched.
                try:
                    raw_chunk = await iterator.__anext__()
                except StopAsyncIteration:
                    break
                except Exception as e:
                    logger.warning(f"Stream failed while reading: {e}")
                    on_chunk(StreamChunk(error=BackendError(f"LLM stream failed: {e}", cause=e)))
                    return

                chunk = self._convert_chunk(raw_chunk)
                if chunk is None:
                    continue
                finished = finished or chunk.is_final
                on_chunk(chunk)

            if not finished:
                logger.warning("Stream closed without a finish reason; treating it as 'stop'")
                on_chunk(StreamChunk(finish_reason="stop"))
        finally:
            # Release the HTTP response even when the loop is left early
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                closing = aclose()
                if inspect.isawaitable(closing):
                    await closing

    @staticmethod
    def _convert_response(raw: Any) -> Response:
        """Convert a LiteLLM ModelResponse into a Response."""
        choices = []
        for position, raw_choice in enumerate(getattr(raw, "choices", None) or []):
            raw_message = getattr(raw_choice, "message", None)
            tool_calls = []
            for call_index, raw_call in enumerate(getattr(raw_message, "tool_calls", None) or []):
                name = raw_call.function.name or ""
                arguments = raw_call.function.arguments or ""
                call_id = getattr(raw_call, "id", None)
                if not call_id:
                    call_id = fallback_call_id(call_index, name, arguments)
                    logger.warning(f"Tool call '{name}' arrived without an id; using {call_id}")
                tool_calls.append(WireToolCall(id=call_id, name=name, arguments=arguments))
            choices.append(
                Choice(
                    index=position,
                    message=ResponseMessage(
                        content=getattr(raw_message, "content", None),
                        tool_calls=tool_calls,
                    ),
                    finish_reason=getattr(raw_choice, "finish_reason", None),
                )
            )

        raw_usage = getattr(raw, "usage", None)
        usage = Usage()
        if raw_usage is not None:
            usage = Usage(
                prompt_tokens=getattr(raw_usage, "prompt_tokens", 0) or 0,
                completion_tokens=getattr(raw_usage, "completion_tokens", 0) or 0,
            )

        return Response(
            id=getattr(raw, "id", None),
            model=getattr(raw, "model", None) or "",
            choices=choices,
            usage=usage,
        )

    @staticmethod
    def _convert_chunk(raw: Any) -> StreamChunk | None:
        """Convert a LiteLLM streaming chunk; chunks without a choice are skipped."""
        choices = getattr(raw, "choices", None) or []
        if not choices:
            return None

        choice = choices[0]
        delta = getattr(choice, "delta", None)

        fragments = []
        for position, raw_fragment in enumerate(getattr(delta, "tool_calls", None) or []):
            function = getattr(raw_fragment, "function", None)
            index = getattr(raw_fragment, "index", None)
            fragments.append(
                ToolCallFragment(
                    index=position if index is None else index,
                    id=getattr(raw_fragment, "id", None),
                    name=getattr(function, "name", None),
                    arguments=getattr(function, "arguments", None),
                )
            )

        return StreamChunk(
            content=getattr(delta, "content", None) or None,
            tool_calls=fragments,
            finish_reason=getattr(choice, "finish_reason", None),
        )
