"""
Chat client with unified chat() and stream() methods over any provider.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import Any, AsyncGenerator, Iterable, Optional, Self

import httpx

from llm_relay.adapters import ChatAdapter, PreparedRequest, get_adapter
from llm_relay.adapters.base import load_json
from llm_relay.errors import ResponseParsingError, classify_error
from llm_relay.provider import ProviderDescriptor, get_api_key
from llm_relay.settings import Settings, load_settings
from llm_relay.types import MessageLike

__all__ = ["ChatClient"]


class ChatClient:
    """
    One provider record bound to an adapter and an ``httpx.AsyncClient``.

    The adapter is resolved when the client is built, so an unsupported
    provider surfaces as ConfigurationError at setup rather than per call.
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        credential: Optional[str] = None,
        *,
        adapter: Optional[ChatAdapter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.descriptor = descriptor
        self.settings = settings or load_settings()
        self.logger = logger or logging.getLogger(__name__)
        self.adapter = adapter or get_adapter(
            descriptor.provider_type, settings=self.settings, logger=self.logger
        )
        self.credential = credential or get_api_key(descriptor.provider_type)
        self.name = name or f"{self.__class__.__name__}:{descriptor.provider_type}"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                self.settings.timeout, connect=self.settings.connect_timeout
            )
        )

    def prepare(
        self, messages: Iterable[MessageLike], *, stream: bool
    ) -> PreparedRequest:
        return self.adapter.prepare_request(
            messages,
            self.descriptor.configuration,
            self.credential,
            endpoint=self.descriptor.api_endpoint or None,
            stream=stream,
        )

    async def chat(self, messages: Iterable[MessageLike]) -> str:
        """
        Send a buffered request and return the aggregated answer.

        Raises:
            ExternalServiceError: Non-2xx answer, in-band error or transport failure.
            ResponseParsingError: The body did not have the expected shape.
        """
        request = self.prepare(messages, stream=False)
        self._log(f"Sending request to {request.url} (Stream: False)")
        try:
            return await self.adapter.execute(self._client, request)
        except httpx.HTTPError as exc:
            raise classify_error(exc, self.logger) from exc

    async def stream(
        self, messages: Iterable[MessageLike]
    ) -> AsyncGenerator[str, None]:
        """
        Send a streaming request and yield non-empty text deltas in receipt order.

        Closing the generator closes the underlying HTTP response. A failure
        after some deltas were yielded is raised as the terminal event.
        """
        request = self.prepare(messages, stream=True)
        self._log(f"Sending request to {request.url} (Stream: True)")
        try:
            async with aclosing(self.adapter.stream(self._client, request)) as deltas:
                async for delta in deltas:
                    yield delta
        except httpx.HTTPError as exc:
            raise classify_error(exc, self.logger) from exc

    async def complete_json(self, request: PreparedRequest) -> Any:
        """Send an already prepared (possibly tool-augmented) request; return its JSON body."""
        try:
            response = await self._client.request(**request.send_kwargs())
            await self.adapter.raise_for_status(response)
        except httpx.HTTPError as exc:
            raise classify_error(exc, self.logger) from exc
        data = load_json(response.content)
        if data is None:
            raise ResponseParsingError("response body is not JSON")
        return data

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

    # --- lifecycle ---------------------------------------------------------
    async def aclose(self) -> None:
        """
        Close the HTTP client if this instance created it.
        Safe to call multiple times.
        """
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
