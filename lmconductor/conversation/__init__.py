"""
Conversation data model and transcript state.

The Conversation facade and its builder live in
``lmconductor.conversation.conversation`` and
``lmconductor.conversation.builder`` and are re-exported from the top-level
package.
"""

from lmconductor.conversation.models import (
    Message,
    Role,
    ToolCallRequest,
    ToolDefinition,
    TurnOutcome,
)
from lmconductor.conversation.state import ConversationState

__all__ = [
    "ConversationState",
    "Message",
    "Role",
    "ToolCallRequest",
    "ToolDefinition",
    "TurnOutcome",
]
