from __future__ import annotations

import logging
from typing import Optional, Type

from llm_relay.adapters.anthropic import AnthropicChatAdapter, AnthropicComputerAdapter
from llm_relay.adapters.base import ChatAdapter
from llm_relay.adapters.cohere import CohereChatAdapter
from llm_relay.adapters.gemini import GeminiChatAdapter
from llm_relay.adapters.images import DalleImageAdapter, StabilityImageAdapter
from llm_relay.adapters.leonardo import LeonardoImageAdapter
from llm_relay.adapters.openai import (
    GrokChatAdapter,
    MistralChatAdapter,
    OpenAIChatAdapter,
    PerplexityChatAdapter,
)
from llm_relay.errors import ConfigurationError
from llm_relay.provider import ProviderType
from llm_relay.settings import Settings

# map ProviderType to its adapter implementation
_ADAPTER_REGISTRY: dict[ProviderType, Type[ChatAdapter]] = {
    ProviderType.OPENAI: OpenAIChatAdapter,
    ProviderType.MISTRAL: MistralChatAdapter,
    ProviderType.PERPLEXITY: PerplexityChatAdapter,
    ProviderType.GROK: GrokChatAdapter,
    ProviderType.ANTHROPIC: AnthropicChatAdapter,
    ProviderType.ANTHROPIC_COMPUTER: AnthropicComputerAdapter,
    ProviderType.COHERE: CohereChatAdapter,
    ProviderType.GEMINI: GeminiChatAdapter,
    ProviderType.DALLE: DalleImageAdapter,
    ProviderType.LEONARDO: LeonardoImageAdapter,
    ProviderType.STABILITY: StabilityImageAdapter,
}


def get_adapter(
    provider_type: ProviderType | str,
    *,
    settings: Optional[Settings] = None,
    logger: Optional[logging.Logger] = None,
) -> ChatAdapter:
    """
    Resolve a provider tag to a concrete adapter.

    Raises:
        ConfigurationError: The tag is unknown or has no adapter.
    """
    tag = ProviderType.parse(provider_type)
    try:
        adapter_cls = _ADAPTER_REGISTRY[tag]
    except KeyError as exc:
        raise ConfigurationError(f"Unsupported provider: {tag}", exc) from exc
    return adapter_cls(settings, logger=logger)
