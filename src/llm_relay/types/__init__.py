from .chat import ChatMessage, MessageLike, Role, coerce_messages
from .tool import ToolCall, ToolChoice, ToolExecutionOutcome, ToolResult

__all__ = [
    "ChatMessage",
    "MessageLike",
    "Role",
    "coerce_messages",
    "ToolCall",
    "ToolChoice",
    "ToolExecutionOutcome",
    "ToolResult",
]
