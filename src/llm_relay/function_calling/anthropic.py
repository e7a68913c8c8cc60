"""Anthropic-style function calling (``input_schema`` / ``tool_use`` blocks)."""

from __future__ import annotations

from typing import Any, Final, Sequence

from anthropic.types import Message

from llm_relay.adapters import PreparedRequest
from llm_relay.errors import ResponseParsingError
from llm_relay.function_calling.base import ToolCallAdapter, request_body, result_content
from llm_relay.tools import ToolDefinition
from llm_relay.types import ToolCall, ToolChoice, ToolResult

REQUIRED_STEER: Final = "You must use a tool to answer this query."
NONE_STEER: Final = "Do not use any tools to answer this query."
AUTO_STEER: Final = "You have access to tools. Use them when appropriate."
SPECIFIC_STEER: Final = "You must use the {name} tool to answer this query."


def _content_blocks(response: Any) -> list[dict[str, Any]]:
    if isinstance(response, Message):
        response = response.model_dump()
    if not isinstance(response, dict):
        raise ResponseParsingError(
            f"expected a JSON object, got {type(response).__name__}"
        )
    content = response.get("content")
    if not isinstance(content, list):
        raise ResponseParsingError("Missing 'content' array in response")
    return [block for block in content if isinstance(block, dict)]


def _is_steering(text: str) -> bool:
    if text in (REQUIRED_STEER, NONE_STEER, AUTO_STEER):
        return True
    prefix, _, suffix = SPECIFIC_STEER.partition("{name}")
    return text.startswith(prefix) and text.endswith(suffix)


def _without_steering(system: str) -> str:
    """Drop the sentence a previous preparation appended, and nothing else."""
    head, sep, tail = system.rpartition("\n\n")
    if _is_steering(tail):
        return head if sep else ""
    return system


class AnthropicToolCallAdapter(ToolCallAdapter):
    """
    Tool-choice intent is steered through the system prompt. Re-preparing
    a request replaces the previous steering sentence instead of stacking.
    """

    name = "anthropic"

    def format_tools(self, tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.to_json_schema(),
            }
            for tool in tools
        ]

    def format_tool_choice(self, choice: ToolChoice) -> Any:
        if choice.kind == "required":
            return True
        if choice.kind == "none":
            return False
        if choice.kind == "specific":
            return {"name": choice.name}
        return None

    def steering_sentence(self, choice: ToolChoice) -> str:
        if choice.kind == "required":
            return REQUIRED_STEER
        if choice.kind == "none":
            return NONE_STEER
        if choice.kind == "specific":
            return SPECIFIC_STEER.format(name=choice.name)
        return AUTO_STEER

    def parse_tool_calls(self, response: Any) -> list[ToolCall]:
        calls: list[ToolCall] = []
        for block in _content_blocks(response):
            if block.get("type") != "tool_use":
                continue
            call_id = block.get("id")
            if not call_id:
                raise ResponseParsingError("Missing 'id' in tool_use block")
            name = block.get("name")
            if not name:
                raise ResponseParsingError(f"Missing 'name' in tool_use block {call_id}")
            arguments = block.get("input") or {}
            if not isinstance(arguments, dict):
                raise ResponseParsingError(f"'input' of tool_use block {call_id} is not an object")
            calls.append(ToolCall(id=call_id, name=name, arguments=dict(arguments)))
        return calls

    def prepare_request(
        self,
        request: PreparedRequest | dict[str, Any],
        tools: Sequence[ToolDefinition],
        choice: ToolChoice = ToolChoice.AUTO,
    ) -> None:
        body = request_body(request)
        body["tools"] = self.format_tools(tools)

        sentence = self.steering_sentence(choice)
        system = body.get("system")
        if isinstance(system, list):
            blocks = list(system)
            if blocks and isinstance(blocks[-1], dict) and _is_steering(blocks[-1].get("text", "")):
                blocks.pop()
            body["system"] = [*blocks, {"type": "text", "text": sentence}]
            return
        base = _without_steering(system or "")
        body["system"] = f"{base}\n\n{sentence}" if base else sentence

    def reply_text(self, response: Any) -> str:
        return "".join(
            block.get("text", "")
            for block in _content_blocks(response)
            if block.get("type") == "text"
        )

    def assistant_message(self, response: Any) -> dict[str, Any]:
        content: list[dict[str, Any]] = []
        for block in _content_blocks(response):
            if block.get("type") == "text":
                content.append({"type": "text", "text": block.get("text", "")})
            elif block.get("type") == "tool_use":
                content.append(
                    {
                        "type": "tool_use",
                        "id": block["id"],
                        "name": block["name"],
                        "input": block.get("input") or {},
                    }
                )
        return {"role": "assistant", "content": content}

    def tool_result_messages(self, results: Sequence[ToolResult]) -> list[dict[str, Any]]:
        if not results:
            return []
        return [
            {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": result.tool_call_id,
                        "content": result_content(result),
                    }
                    for result in results
                ],
            }
        ]
