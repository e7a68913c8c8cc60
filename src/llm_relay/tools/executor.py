"""Executable tools: the abstract contract and two ready-made implementations."""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

import httpx

from llm_relay.adapters.base import load_json
from llm_relay.errors import ToolExternalServiceError
from llm_relay.tools.definition import ToolDefinition

__all__ = ["ToolExecutor", "FunctionTool", "RemoteToolExecutor"]

_logger = logging.getLogger(__name__)

ToolFunction = Callable[[dict[str, Any]], Union[Any, Awaitable[Any]]]


class ToolExecutor(ABC):
    """
    A named tool the registry can dispatch to.

    `validate_args` must be cheap, synchronous and free of side effects; the
    registry calls it before `execute`. `execute` may suspend on I/O and either
    returns a JSON-compatible value or raises a `ToolError`.
    """

    @property
    @abstractmethod
    def definition(self) -> ToolDefinition:
        ...

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description

    def validate_args(self, args: Mapping[str, Any]) -> None:
        """Extra checks beyond the declared schema. Default: none."""
        return None

    @abstractmethod
    async def execute(self, args: dict[str, Any]) -> Any:
        ...


class FunctionTool(ToolExecutor):
    """Adapt a plain (sync or async) function taking the argument dict."""

    def __init__(
        self,
        definition: ToolDefinition,
        func: ToolFunction,
        *,
        validator: Optional[Callable[[Mapping[str, Any]], None]] = None,
    ) -> None:
        self._definition = definition
        self._func = func
        self._validator = validator

    @property
    def definition(self) -> ToolDefinition:
        return self._definition

    def validate_args(self, args: Mapping[str, Any]) -> None:
        if self._validator is not None:
            self._validator(args)

    async def execute(self, args: dict[str, Any]) -> Any:
        result = self._func(args)
        if inspect.isawaitable(result):
            result = await result
        return result


class RemoteToolExecutor(ToolExecutor):
    """
    A tool implemented by another service.

    Posts ``{"name", "arguments"}`` to ``endpoint`` and returns the decoded
    JSON answer. Transport failures and non-2xx answers become
    `ToolExternalServiceError`.
    """

    def __init__(
        self,
        definition: ToolDefinition,
        endpoint: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ) -> None:
        self._definition = definition
        self.endpoint = endpoint
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def definition(self) -> ToolDefinition:
        return self._definition

    def build_payload(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"name": self.name, "arguments": args}

    async def execute(self, args: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(self.endpoint, json=self.build_payload(args))
        except httpx.HTTPError as exc:
            _logger.warning("Remote tool %s unreachable: %s", self.name, exc)
            raise ToolExternalServiceError(
                f"{self.name} at {self.endpoint}: {exc}", original_exc=exc
            ) from exc
        if not response.is_success:
            raise ToolExternalServiceError(
                f"{self.name} answered {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        data = load_json(response.content)
        return self.parse_result(data if data is not None else response.text)

    def parse_result(self, data: Any) -> Any:
        return data

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
