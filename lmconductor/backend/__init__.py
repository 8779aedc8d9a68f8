"""
Backend boundary: the client contract the turn handlers depend on, the
decoded response/chunk shapes, and the LiteLLM implementation.
"""

from lmconductor.backend.base import BackendClient, ChunkCallback
from lmconductor.backend.litellm_client import LiteLLMBackend
from lmconductor.backend.models import (
    Choice,
    Response,
    ResponseMessage,
    StreamChunk,
    ToolCallFragment,
    Usage,
    WireToolCall,
)

__all__ = [
    "BackendClient",
    "ChunkCallback",
    "Choice",
    "LiteLLMBackend",
    "Response",
    "ResponseMessage",
    "StreamChunk",
    "ToolCallFragment",
    "Usage",
    "WireToolCall",
]
