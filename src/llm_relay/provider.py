from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Final, Mapping, Optional

from dotenv import load_dotenv

from llm_relay.errors import ConfigurationError

__all__ = ["ProviderType", "ProviderDescriptor", "get_api_key"]


class ProviderType(StrEnum):
    OPENAI = "gpt"
    MISTRAL = "mistral"
    PERPLEXITY = "perplexity"
    GROK = "grok"
    ANTHROPIC = "claude"
    ANTHROPIC_COMPUTER = "claude-computer"
    COHERE = "command"
    GEMINI = "gemini"
    DALLE = "dalle"
    LEONARDO = "leonardo"
    STABILITY = "stability"

    @classmethod
    def parse(cls, tag: "str | ProviderType") -> "ProviderType":
        """Resolve a stored provider tag (or a common alias) to a member.

        Raises:
            ConfigurationError: The tag names no supported provider.
        """
        if isinstance(tag, ProviderType):
            return tag
        key = str(tag).strip().lower()
        try:
            return cls(_ALIASES.get(key, key))
        except ValueError as exc:
            raise ConfigurationError(f"Unsupported provider: {tag!r}", exc) from exc


_ALIASES: Final[dict[str, str]] = {
    "openai": "gpt",
    "anthropic": "claude",
    "anthropic-computer": "claude-computer",
    "cohere": "command",
    "google": "gemini",
    "xai": "grok",
}

_ENV_VARS: Final[dict[ProviderType, str]] = {
    ProviderType.OPENAI: "OPENAI_API_KEY",
    ProviderType.MISTRAL: "MISTRAL_API_KEY",
    ProviderType.PERPLEXITY: "PERPLEXITY_API_KEY",
    ProviderType.GROK: "XAI_API_KEY",
    ProviderType.ANTHROPIC: "ANTHROPIC_API_KEY",
    ProviderType.ANTHROPIC_COMPUTER: "ANTHROPIC_API_KEY",
    ProviderType.COHERE: "COHERE_API_KEY",
    ProviderType.GEMINI: "GEMINI_API_KEY",
    ProviderType.DALLE: "OPENAI_API_KEY",
    ProviderType.LEONARDO: "LEONARDO_API_KEY",
    ProviderType.STABILITY: "STABILITY_API_KEY",
}


@dataclass(frozen=True, slots=True)
class ProviderDescriptor:
    """Read-only view of a provider record owned by the persistence layer.

    Args:
        provider_type: Stored tag, resolved through `ProviderType.parse`.
        api_endpoint: Overrides the adapter's default URL when non-empty.
        configuration: Provider configuration JSON (model, sampling, extras).
    """

    provider_type: ProviderType
    api_endpoint: Optional[str] = None
    configuration: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "provider_type", ProviderType.parse(self.provider_type))
        if not isinstance(self.configuration, Mapping):
            raise ConfigurationError(
                f"configuration must be a JSON object, got {type(self.configuration).__name__}"
            )


def get_api_key(provider_type: ProviderType) -> str:
    load_dotenv()
    env = _ENV_VARS.get(ProviderType.parse(provider_type))
    if not env:
        raise ConfigurationError(f"No credential variable for {provider_type}")
    key = os.getenv(env)
    if not key:
        raise ConfigurationError(f"{env} missing")
    return key
