"""
LLM Relay - one interface to many text and image providers, plus tool calling
and a sandboxed tool worker.
"""

import logging

from .client import ChatClient
from .factory import create_client
from .adapters import ChatAdapter, PreparedRequest, get_adapter
from .errors import (
    RelayError,
    ConfigurationError,
    ResponseParsingError,
    ExternalServiceError,
    PollTimeout,
    ToolUseLimitExceeded,
    ToolError,
    ToolNotFound,
    MissingParameter,
    InvalidArgument,
    ExecutionError,
    ToolExternalServiceError,
)
from .provider import ProviderDescriptor, ProviderType, get_api_key
from .settings import Settings, load_settings
from .streaming import StreamNormalizer
from .types import ChatMessage, Role, ToolCall, ToolChoice, ToolExecutionOutcome, ToolResult
from .tools import ToolDefinition, ToolExecutor, ToolParameter, ParameterType, ToolRegistry
from .function_calling import (
    FailurePolicy,
    FunctionCallingOrchestrator,
    ToolUseSession,
    get_tool_call_adapter,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "ChatClient",
    "create_client",
    "ChatAdapter",
    "PreparedRequest",
    "get_adapter",
    "RelayError",
    "ConfigurationError",
    "ResponseParsingError",
    "ExternalServiceError",
    "PollTimeout",
    "ToolUseLimitExceeded",
    "ToolError",
    "ToolNotFound",
    "MissingParameter",
    "InvalidArgument",
    "ExecutionError",
    "ToolExternalServiceError",
    "ProviderDescriptor",
    "ProviderType",
    "get_api_key",
    "Settings",
    "load_settings",
    "StreamNormalizer",
    "ChatMessage",
    "Role",
    "ToolCall",
    "ToolChoice",
    "ToolExecutionOutcome",
    "ToolResult",
    "ToolDefinition",
    "ToolExecutor",
    "ToolParameter",
    "ParameterType",
    "ToolRegistry",
    "FailurePolicy",
    "FunctionCallingOrchestrator",
    "ToolUseSession",
    "get_tool_call_adapter",
]
