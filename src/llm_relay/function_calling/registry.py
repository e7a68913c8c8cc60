from __future__ import annotations

from typing import Final, Type

from llm_relay.errors import ConfigurationError
from llm_relay.function_calling.anthropic import AnthropicToolCallAdapter
from llm_relay.function_calling.base import ToolCallAdapter
from llm_relay.function_calling.openai import OpenAIToolCallAdapter
from llm_relay.provider import ProviderType

_TOOL_CALL_ADAPTERS: Final[dict[ProviderType, Type[ToolCallAdapter]]] = {
    ProviderType.OPENAI: OpenAIToolCallAdapter,
    ProviderType.ANTHROPIC: AnthropicToolCallAdapter,
}


def get_tool_call_adapter(provider_type: ProviderType | str) -> ToolCallAdapter:
    """
    Resolve the function-calling convention for a provider tag.

    Raises:
        ConfigurationError: Unknown tag, or a provider without function calling.
    """
    tag = ProviderType.parse(provider_type)
    try:
        return _TOOL_CALL_ADAPTERS[tag]()
    except KeyError as exc:
        raise ConfigurationError(
            f"Function calling is not supported for provider: {tag}", exc
        ) from exc
