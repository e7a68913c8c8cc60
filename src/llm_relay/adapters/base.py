"""Shared request/response plumbing for chat adapters."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, ClassVar, Iterable, Mapping, Optional

import httpx

from llm_relay.errors import ExternalServiceError
from llm_relay.params import require
from llm_relay.provider import ProviderType
from llm_relay.settings import Settings
from llm_relay.streaming import StreamFraming, StreamNormalizer
from llm_relay.types import MessageLike

__all__ = ["PreparedRequest", "ChatAdapter", "load_json", "body_text"]


@dataclass(slots=True)
class PreparedRequest:
    """A provider-shaped HTTP request, ready for `httpx`."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    json: Optional[dict[str, Any]] = None
    files: Optional[dict[str, Any]] = None
    stream: bool = True

    def send_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "method": self.method,
            "url": self.url,
            "headers": self.headers,
        }
        if self.json is not None:
            kwargs["json"] = self.json
        if self.files is not None:
            kwargs["files"] = self.files
        return kwargs


def body_text(body: bytes | str | Any) -> str:
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        return body
    return json.dumps(body)


def load_json(body: bytes | str | Any) -> Any:
    """Decode a response body; already-decoded JSON passes through, junk gives None."""
    if not isinstance(body, (bytes, str)):
        return body
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


class ChatAdapter(ABC):
    """
    One upstream provider's chat (or image) convention.

    Subclasses encode the endpoint, auth header shape, role remapping,
    default sampling parameters and stream framing. The shared `execute` and
    `stream` coroutines run the HTTP exchange through an `httpx.AsyncClient`
    owned by the caller.
    """

    provider_type: ClassVar[ProviderType]
    default_url: ClassVar[str]

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.logger = logger or logging.getLogger(__name__)
        self.name = self.__class__.__name__

    # --- request / response shape ------------------------------------------
    @abstractmethod
    def prepare_request(
        self,
        messages: Iterable[MessageLike],
        config: Mapping[str, Any] | None,
        credential: str,
        *,
        endpoint: Optional[str] = None,
        stream: bool = True,
    ) -> PreparedRequest:
        """
        Build the outbound request.

        Args:
            messages: Conversation so far, oldest first.
            config: Provider configuration JSON.
            credential: API key for the auth header.
            endpoint: Overrides `default_url` when set.
            stream: Ask the upstream for an incremental response.

        Raises:
            ConfigurationError: A required configuration field is absent.
        """
        ...

    @abstractmethod
    def parse_response(self, body: bytes | str | Any) -> str:
        """Extract the answer text from a buffered response body."""
        ...

    def framing(self) -> StreamFraming:
        raise NotImplementedError(f"{self.name} has no incremental stream framing")

    async def stream_response(
        self, response: httpx.Response
    ) -> AsyncGenerator[str, None]:
        """Lazy text deltas read from an open response. Not restartable."""
        normalizer = StreamNormalizer(self.framing(), logger=self.logger, name=self.name)
        async with aclosing(normalizer.normalize(response.aiter_bytes())) as deltas:
            async for delta in deltas:
                yield delta

    # --- HTTP exchange -----------------------------------------------------
    async def execute(self, http: httpx.AsyncClient, request: PreparedRequest) -> str:
        """Send ``request`` and return the whole answer."""
        response = await http.request(**request.send_kwargs())
        await self.raise_for_status(response)
        return self.parse_response(response.content)

    async def stream(
        self, http: httpx.AsyncClient, request: PreparedRequest
    ) -> AsyncGenerator[str, None]:
        """Send ``request`` and yield deltas while the connection stays open."""
        async with http.stream(**request.send_kwargs()) as response:
            await self.raise_for_status(response)
            async with aclosing(self.stream_response(response)) as deltas:
                async for delta in deltas:
                    yield delta

    async def raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        body = body_text(await response.aread())
        self._log(f"Upstream answered {response.status_code}", logging.WARNING)
        raise self.error_for_status(response.status_code, response.reason_phrase, body)

    def error_for_status(self, status: int, reason: str, body: str) -> ExternalServiceError:
        return ExternalServiceError.from_response(status, reason, body)

    # --- helpers -----------------------------------------------------------
    def _model(self, config: Mapping[str, Any], default: Optional[str] = None) -> str:
        if default is not None and not config.get("model"):
            return default
        return require(config, "model", self.name)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")
