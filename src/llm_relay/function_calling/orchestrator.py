"""
One request -> response -> tool-execution cycle.

`FunctionCallingOrchestrator` composes a `ToolCallAdapter` with a
`ToolRegistry`. Tool calls from one response run sequentially, in the order
the model listed them.
"""
from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any, Optional, Sequence

from llm_relay.adapters import PreparedRequest
from llm_relay.errors import ToolError
from llm_relay.function_calling.base import ToolCallAdapter
from llm_relay.function_calling.registry import get_tool_call_adapter
from llm_relay.provider import ProviderType
from llm_relay.tools import ToolDefinition, ToolRegistry
from llm_relay.types import ToolChoice, ToolExecutionOutcome, ToolResult

__all__ = ["FailurePolicy", "FunctionCallingOrchestrator"]


class FailurePolicy(StrEnum):
    """What `handle_response` does when one tool in a batch fails.

    ABORT re-raises the first ToolError and discards results gathered so far,
    so the conversation never receives a partial batch. CONTINUE records the
    failure as ``{"error": message}`` for that call and runs the rest.
    """

    ABORT = "abort"
    CONTINUE = "continue"


def _jsonable(value: Any) -> Any:
    if isinstance(value, ToolExecutionOutcome):
        return value.as_dict()
    return value


class FunctionCallingOrchestrator:
    def __init__(
        self,
        adapter: ToolCallAdapter,
        registry: ToolRegistry,
        *,
        policy: FailurePolicy = FailurePolicy.ABORT,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.adapter = adapter
        self.registry = registry
        self.policy = policy
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or f"{self.__class__.__name__}:{adapter.name}"

    @classmethod
    def for_provider(
        cls,
        provider_type: ProviderType | str,
        registry: ToolRegistry,
        **kwargs: Any,
    ) -> "FunctionCallingOrchestrator":
        return cls(get_tool_call_adapter(provider_type), registry, **kwargs)

    @property
    def provider_name(self) -> str:
        return self.adapter.name

    async def prepare_request(
        self,
        request: PreparedRequest | dict[str, Any],
        choice: ToolChoice = ToolChoice.AUTO,
        tools: Optional[Sequence[ToolDefinition]] = None,
    ) -> None:
        """Advertise ``tools`` (default: every registered tool) on ``request``."""
        if tools is None:
            tools = await self.registry.list_tools()
        self.adapter.prepare_request(request, tools, choice)
        self._log(f"Prepared request with {len(tools)} tools (choice: {choice.kind})", logging.DEBUG)

    async def handle_response(self, raw_response: Any) -> list[ToolResult]:
        """
        Run every tool call found in ``raw_response``.

        Returns:
            ``ToolResult`` pairs in call order, or an empty list when the
            response is a plain assistant reply.

        Raises:
            ResponseParsingError: The response lacks an expected field.
            ToolError: Under FailurePolicy.ABORT, the first failing call.
        """
        calls = self.adapter.parse_tool_calls(raw_response)
        if not calls:
            return []

        self._log(f"Executing {len(calls)} tool call(s)")
        results: list[ToolResult] = []
        for call in calls:
            try:
                value = await self.registry.execute(call.name, call.arguments)
            except ToolError as exc:
                self._log(f"Tool call {call.id} ({call.name}) failed: {exc}", logging.WARNING)
                if self.policy is FailurePolicy.ABORT:
                    raise
                results.append(ToolResult(call.id, {"error": str(exc)}))
                continue
            results.append(ToolResult(call.id, _jsonable(value)))
        return results

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")
