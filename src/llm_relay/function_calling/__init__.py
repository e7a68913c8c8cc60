from .base import ToolCallAdapter
from .openai import OpenAIToolCallAdapter
from .anthropic import AnthropicToolCallAdapter
from .registry import get_tool_call_adapter
from .orchestrator import FailurePolicy, FunctionCallingOrchestrator
from .session import ToolUseOutcome, ToolUseSession

__all__ = [
    "ToolCallAdapter",
    "OpenAIToolCallAdapter",
    "AnthropicToolCallAdapter",
    "get_tool_call_adapter",
    "FailurePolicy",
    "FunctionCallingOrchestrator",
    "ToolUseOutcome",
    "ToolUseSession",
]
