"""OpenAI-style function calling (``tools`` / ``tool_choice`` / ``tool_calls``)."""

from __future__ import annotations

import json
from typing import Any, Sequence

from openai.types.chat import ChatCompletion

from llm_relay.adapters import PreparedRequest
from llm_relay.errors import ResponseParsingError
from llm_relay.function_calling.base import ToolCallAdapter, request_body, result_content
from llm_relay.tools import ToolDefinition
from llm_relay.types import ToolCall, ToolChoice, ToolResult


def _as_dict(response: Any) -> dict[str, Any]:
    if isinstance(response, ChatCompletion):
        return response.model_dump()
    if not isinstance(response, dict):
        raise ResponseParsingError(
            f"expected a JSON object, got {type(response).__name__}"
        )
    return response


def _first_message(data: dict[str, Any]) -> dict[str, Any] | None:
    choices = data.get("choices")
    if not isinstance(choices, list):
        raise ResponseParsingError("Missing 'choices' array in response")
    if not choices:
        return None
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        raise ResponseParsingError("Missing 'message' in first choice")
    return message


class OpenAIToolCallAdapter(ToolCallAdapter):
    name = "openai"

    def format_tools(self, tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.to_json_schema(),
                },
            }
            for tool in tools
        ]

    def format_tool_choice(self, choice: ToolChoice) -> Any:
        if choice.kind == "specific":
            return {"type": "function", "function": {"name": choice.name}}
        return choice.kind

    def parse_tool_calls(self, response: Any) -> list[ToolCall]:
        message = _first_message(_as_dict(response))
        if message is None:
            return []

        calls: list[ToolCall] = []
        for raw in message.get("tool_calls") or []:
            call_id = raw.get("id")
            if not call_id:
                raise ResponseParsingError("Missing 'id' in tool call")
            function = raw.get("function")
            if not isinstance(function, dict):
                raise ResponseParsingError(f"Missing 'function' in tool call {call_id}")
            name = function.get("name")
            if not name:
                raise ResponseParsingError(f"Missing 'name' in tool call {call_id}")
            if "arguments" not in function:
                raise ResponseParsingError(f"Missing 'arguments' in tool call {call_id}")

            raw_args = function["arguments"]
            if isinstance(raw_args, dict):
                arguments = raw_args
            elif raw_args is None or (isinstance(raw_args, str) and not raw_args.strip()):
                arguments = {}
            else:
                try:
                    arguments = json.loads(raw_args)
                except (TypeError, json.JSONDecodeError) as exc:
                    raise ResponseParsingError(
                        f"Invalid JSON arguments in tool call {call_id}", exc
                    ) from exc
                if not isinstance(arguments, dict):
                    raise ResponseParsingError(
                        f"Arguments of tool call {call_id} are not a JSON object"
                    )
            calls.append(ToolCall(id=call_id, name=name, arguments=arguments))
        return calls

    def prepare_request(
        self,
        request: PreparedRequest | dict[str, Any],
        tools: Sequence[ToolDefinition],
        choice: ToolChoice = ToolChoice.AUTO,
    ) -> None:
        body = request_body(request)
        body["tools"] = self.format_tools(tools)
        body["tool_choice"] = self.format_tool_choice(choice)

    def reply_text(self, response: Any) -> str:
        message = _first_message(_as_dict(response))
        return (message or {}).get("content") or ""

    def assistant_message(self, response: Any) -> dict[str, Any]:
        message = _first_message(_as_dict(response)) or {}
        chat_message: dict[str, Any] = {
            "role": "assistant",
            "content": message.get("content"),
        }
        if message.get("tool_calls"):
            chat_message["tool_calls"] = [
                {
                    "id": tc["id"],
                    "type": tc.get("type") or "function",
                    "function": {
                        "name": tc["function"]["name"],
                        "arguments": tc["function"]["arguments"],
                    },
                }
                for tc in message["tool_calls"]
            ]
        return chat_message

    def tool_result_messages(self, results: Sequence[ToolResult]) -> list[dict[str, Any]]:
        return [
            {
                "role": "tool",
                "tool_call_id": result.tool_call_id,
                "content": result_content(result),
            }
            for result in results
        ]
