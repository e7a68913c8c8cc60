from __future__ import annotations

import logging

import httpx

from llm_relay.adapters import get_adapter
from llm_relay.client import ChatClient
from llm_relay.provider import ProviderDescriptor
from llm_relay.settings import Settings

__all__ = ["create_client", "get_adapter"]


def create_client(
    descriptor: ProviderDescriptor,
    credential: str | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    settings: Settings | None = None,
    logger: logging.Logger | None = None,
) -> ChatClient:
    """
    Factory for a chat client bound to one provider record.

    Args:
        descriptor: Provider tag, endpoint override and configuration JSON.
        credential: Overrides automatic lookup; if omitted, pulled from env.
        http_client: Optional pre-configured ``httpx.AsyncClient`` to use.
            If not provided, one is built from ``settings`` timeouts.
        settings: Process settings; defaults to ``load_settings()``.
        logger: Optional custom logger.

    Raises:
        ConfigurationError: Unsupported provider or missing credential.
    """
    return ChatClient(
        descriptor,
        credential,
        http_client=http_client,
        settings=settings,
        logger=logger,
    )
