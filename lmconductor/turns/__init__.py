"""
Turn handlers.

A turn submits the transcript, runs any tool calls the model requested,
re-submits the extended transcript and returns the final answer:

    ConversationState → TurnHandler.handle()
                             ↓
                     BackendClient.submit / submit_streaming
                             ↓  (streaming: StreamAssembler)
                     ToolExecutor.execute_many  (0..n calls)
                             ↓
                     BackendClient.submit (final answer, no tools)
                             ↓
                        final text
"""

from lmconductor.turns.base import TurnHandler, decode_wire_tool_calls
from lmconductor.turns.non_streaming import NonStreamingTurnHandler
from lmconductor.turns.streaming import DEFAULT_STREAM_TIMEOUT, StreamingTurnHandler

__all__ = [
    "DEFAULT_STREAM_TIMEOUT",
    "NonStreamingTurnHandler",
    "StreamingTurnHandler",
    "TurnHandler",
    "decode_wire_tool_calls",
]
