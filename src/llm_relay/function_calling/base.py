"""Per-provider function-calling conventions."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Sequence

from llm_relay.adapters import PreparedRequest
from llm_relay.tools import ToolDefinition
from llm_relay.types import ToolCall, ToolChoice, ToolResult

__all__ = ["ToolCallAdapter", "request_body", "result_content"]


def request_body(request: PreparedRequest | dict[str, Any]) -> dict[str, Any]:
    """The JSON body to mutate, whether given a prepared request or the body itself."""
    if isinstance(request, PreparedRequest):
        if request.json is None:
            request.json = {}
        return request.json
    return request


def result_content(result: ToolResult) -> str:
    value = result.result
    return value if isinstance(value, str) else json.dumps(value)


class ToolCallAdapter(ABC):
    """
    Translate tool schemas and tool-choice policy into one provider's
    convention, and parse tool invocations back out of its responses.

    Responses may be decoded JSON dicts or the provider SDK's response objects.
    """

    name: ClassVar[str]

    @abstractmethod
    def format_tools(self, tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    def format_tool_choice(self, choice: ToolChoice) -> Any:
        ...

    @abstractmethod
    def parse_tool_calls(self, response: Any) -> list[ToolCall]:
        """
        Extract tool invocations in the order they appear.

        Returns:
            An empty list when the model answered without calling a tool.

        Raises:
            ResponseParsingError: An expected field is missing.
        """
        ...

    @abstractmethod
    def prepare_request(
        self,
        request: PreparedRequest | dict[str, Any],
        tools: Sequence[ToolDefinition],
        choice: ToolChoice = ToolChoice.AUTO,
    ) -> None:
        """Write tools and the tool-choice policy into ``request`` in place."""
        ...

    @abstractmethod
    def reply_text(self, response: Any) -> str:
        """Plain assistant text of a response that carried no tool call."""
        ...

    @abstractmethod
    def assistant_message(self, response: Any) -> dict[str, Any]:
        """The assistant turn to append before the tool results."""
        ...

    @abstractmethod
    def tool_result_messages(self, results: Sequence[ToolResult]) -> list[dict[str, Any]]:
        """Provider-shaped messages carrying tool results back to the model."""
        ...
