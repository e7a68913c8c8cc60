from .base import ChatAdapter, PreparedRequest
from .openai import (
    OpenAIChatAdapter,
    MistralChatAdapter,
    PerplexityChatAdapter,
    GrokChatAdapter,
)
from .anthropic import AnthropicChatAdapter, AnthropicComputerAdapter
from .cohere import CohereChatAdapter
from .gemini import GeminiChatAdapter
from .images import DalleImageAdapter, StabilityImageAdapter
from .leonardo import LeonardoImageAdapter
from .registry import get_adapter

__all__ = [
    "ChatAdapter",
    "PreparedRequest",
    "OpenAIChatAdapter",
    "MistralChatAdapter",
    "PerplexityChatAdapter",
    "GrokChatAdapter",
    "AnthropicChatAdapter",
    "AnthropicComputerAdapter",
    "CohereChatAdapter",
    "GeminiChatAdapter",
    "DalleImageAdapter",
    "StabilityImageAdapter",
    "LeonardoImageAdapter",
    "get_adapter",
]
