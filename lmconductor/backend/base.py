"""
Backend client interface.

Turn handlers depend only on this contract. Implementations own transport,
retries and the mapping of provider failures to exceptions.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from lmconductor.backend.models import Response, StreamChunk
from lmconductor.conversation.models import Message, ToolDefinition

ChunkCallback = Callable[[StreamChunk], None]


class BackendClient(ABC):
    """Abstract completion backend."""

    @abstractmethod
    async def submit(
        self,
        model: str,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] | None,
        options: Mapping[str, Any],
        timeout: float | None = None,
    ) -> Response:
        """
        Send a request and wait for the complete response.

        Args:
            model: Backend model identifier
            messages: Transcript to send
            tools: Tools to advertise, or None to send no tools at all
            options: Sampling options
            timeout: Transport timeout for this request in seconds

        Raises:
            BackendError: If the request fails
        """

    @abstractmethod
    async def submit_streaming(
        self,
        model: str,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] | None,
        options: Mapping[str, Any],
        on_chunk: ChunkCallback,
    ) -> None:
        """
        Send a streaming request, handing each decoded chunk to ``on_chunk``
        in arrival order. Returns once the stream is exhausted.

        A failure while the stream is being read is delivered as a chunk
        carrying ``error``. Exceptions raised by ``on_chunk`` propagate.

        Raises:
            BackendError: If the request cannot be started
        """
