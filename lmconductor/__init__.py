"""
lmconductor - turn orchestration for tool-calling language-model conversations.

Submits a transcript to a completion backend (any provider reachable through
LiteLLM), reassembles streamed output, runs the tool calls the model asks for
through a registry, and returns the final answer.
"""

__version__ = "0.1.0"

from lmconductor.conversation.builder import ConversationBuilder
from lmconductor.conversation.conversation import Conversation
from lmconductor.conversation.models import Message, Role, ToolCallRequest, ToolDefinition, TurnOutcome
from lmconductor.conversation.state import ConversationState
from lmconductor.errors import (
    BackendError,
    ConductorError,
    InvalidSchema,
    MalformedToolArguments,
    ToolExecutionFailed,
    ToolInvalidInput,
    ToolNotFound,
    TurnTimeout,
)
from lmconductor.events.dispatcher import EventDispatcher
from lmconductor.streaming.assembler import StreamAssembler
from lmconductor.tools.executor import ToolExecutor
from lmconductor.tools.registry import ToolRegistry
from lmconductor.turns.non_streaming import NonStreamingTurnHandler
from lmconductor.turns.streaming import StreamingTurnHandler

__all__ = [
    "BackendError",
    "ConductorError",
    "Conversation",
    "ConversationBuilder",
    "ConversationState",
    "EventDispatcher",
    "InvalidSchema",
    "MalformedToolArguments",
    "Message",
    "NonStreamingTurnHandler",
    "Role",
    "StreamAssembler",
    "StreamingTurnHandler",
    "ToolCallRequest",
    "ToolDefinition",
    "ToolExecutionFailed",
    "ToolExecutor",
    "ToolInvalidInput",
    "ToolNotFound",
    "ToolRegistry",
    "TurnOutcome",
    "TurnTimeout",
    "__version__",
]
