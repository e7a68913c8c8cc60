"""Anthropic Messages API adapters: plain chat and the computer-use beta."""

from __future__ import annotations

import json
import logging
from contextlib import aclosing
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, AsyncGenerator, Final, Iterable, Mapping, Optional

import httpx

from llm_relay.adapters.base import ChatAdapter, PreparedRequest, load_json
from llm_relay.errors import ConfigurationError, ResponseParsingError, ToolError, ToolNotFound
from llm_relay.params import merge_config, normalize_config
from llm_relay.provider import ProviderType
from llm_relay.settings import Settings
from llm_relay.streaming import SSEFraming, StreamFraming, extract_path, sse_events
from llm_relay.types import ChatMessage, MessageLike, Role, coerce_messages

if TYPE_CHECKING:
    from llm_relay.sandbox.remote import WorkerClient

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 300

COMPUTER_USE_BETA: Final = "computer-use-2024-10-22"
REPO_ROOT: Final = "/repo"

COMPUTER_USE_DEFAULTS: Final[dict[str, Any]] = {
    "max_tokens": 4096,
    "extra": {"display_width_px": 1024, "display_height_px": 768, "display_number": 1},
}
_DISPLAY_KEYS: Final = ("display_width_px", "display_height_px", "display_number")

COMPUTER_USE_PROMPT: Final = """\
You are Claude, an AI assistant with access to a virtual computer. You can use tools to interact with this computer:

1. The 'computer' tool lets you control mouse and keyboard
2. The 'str_replace_editor' tool lets you create and edit text files
3. The 'bash' tool lets you run shell commands

Important guidelines:
- When using tools, wait for each tool call to complete before making another
- For file operations, use absolute paths starting with /repo/
- The current date is {date}
- GUI applications may take time to appear - be patient and verify with screenshots
- For large command outputs, save to a file and use grep or the editor to examine
- When downloading files, use curl instead of wget

Remember to:
- Create directories before writing files
- Use full paths for file operations
- Handle errors gracefully
- Verify results of tool operations before proceeding"""


def computer_use_prompt(now: datetime) -> str:
    return COMPUTER_USE_PROMPT.format(date=f"{now:%A, %B} {now.day}, {now.year}")


def computer_use_tools(width: int, height: int, display: int) -> list[dict[str, Any]]:
    """Anthropic's native tool entries; their schemas live on Anthropic's side."""
    return [
        {
            "type": "computer_20241022",
            "name": "computer",
            "display_width_px": width,
            "display_height_px": height,
            "display_number": display,
        },
        {"type": "text_editor_20241022", "name": "str_replace_editor"},
        {"type": "bash_20241022", "name": "bash"},
    ]


COMPUTER_USE_TOOL_NAMES: Final = frozenset(
    tool["name"] for tool in computer_use_tools(0, 0, 0)
)


def tool_result_block(tool_use_id: str, text: str, *, is_error: bool = False) -> str:
    """Serialize a ``tool_result`` content block the way it joins the text stream."""
    block: dict[str, Any] = {
        "type": "tool_result",
        "tool_use_id": tool_use_id,
        "content": [{"type": "text", "text": text}],
    }
    if is_error:
        block["is_error"] = True
    return json.dumps(block)


@dataclass(slots=True)
class ToolUseBlock:
    """A ``tool_use`` content block whose input arrives as JSON fragments."""

    id: str
    name: str
    partial_json: str = ""
    dispatched: bool = False

    def input(self) -> Optional[dict[str, Any]]:
        """The assembled input, or None while the fragments are not a JSON object."""
        try:
            value = json.loads(self.partial_json)
        except json.JSONDecodeError:
            return None
        return value if isinstance(value, dict) else None


class AnthropicChatAdapter(ChatAdapter):
    """
    Messages API: ``x-api-key`` auth, system prompt as a top-level field,
    SSE events with text at ``delta.text`` and no end sentinel.
    """

    provider_type = ProviderType.ANTHROPIC
    default_url = "https://api.anthropic.com/v1/messages"

    def prepare_request(
        self,
        messages: Iterable[MessageLike],
        config: Mapping[str, Any] | None,
        credential: str,
        *,
        endpoint: Optional[str] = None,
        stream: bool = True,
    ) -> PreparedRequest:
        cfg = self.configuration(config)
        model = self._model(cfg)
        body = self.build_body(model, coerce_messages(messages), cfg, stream)

        self._log(f"Prepared request for model {model} (Stream: {stream})")
        return PreparedRequest(
            method="POST",
            url=endpoint or self.default_url,
            headers=self.headers(credential),
            json=body,
            stream=stream,
        )

    def configuration(self, config: Mapping[str, Any] | None) -> dict[str, Any]:
        return normalize_config(config)

    def headers(self, credential: str) -> dict[str, str]:
        return {
            "x-api-key": credential,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def build_body(
        self,
        model: str,
        messages: list[ChatMessage],
        cfg: Mapping[str, Any],
        stream: bool,
    ) -> dict[str, Any]:
        system_parts: list[str] = []
        anthropic_messages: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role is Role.SYSTEM:
                if msg.content:
                    system_parts.append(msg.content)
                continue
            # Anthropic only knows user/assistant turns.
            role = "assistant" if msg.role is Role.ASSISTANT else "user"
            anthropic_messages.append({"role": role, "content": msg.content})

        body: dict[str, Any] = {
            "model": model,
            "messages": anthropic_messages,
            "max_tokens": cfg.get("max_tokens", DEFAULT_MAX_TOKENS),
            "stream": stream,
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)
        for key in ("temperature", "top_p", "top_k"):
            if key in cfg:
                body[key] = cfg[key]
        if "stop" in cfg:
            stop = cfg["stop"]
            body["stop_sequences"] = [stop] if isinstance(stop, str) else list(stop)
        for key, value in cfg["extra"].items():
            body.setdefault(key, value)
        return body

    def parse_response(self, body: bytes | str | Any) -> str:
        data = load_json(body)
        blocks = data.get("content") if isinstance(data, dict) else None
        if not isinstance(blocks, list):
            raise ResponseParsingError("Missing 'content' array in response")
        return "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )

    def framing(self) -> StreamFraming:
        return SSEFraming(("delta", "text"), sentinel=None)


class AnthropicComputerAdapter(AnthropicChatAdapter):
    """
    Claude driving the sandbox worker through the computer-use beta tools.

    Each ``tool_use`` block is assembled from its ``input_json_delta``
    fragments and, once the block stops, dispatched to the worker. The worker's
    answer joins the text stream as one serialized ``tool_result`` block, so a
    failed tool is reported in-stream (``is_error``) rather than raised.
    """

    provider_type = ProviderType.ANTHROPIC_COMPUTER

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        logger: Optional[logging.Logger] = None,
        worker: Optional[WorkerClient] = None,
    ) -> None:
        super().__init__(settings, logger=logger)
        self._worker = worker

    @property
    def worker(self) -> WorkerClient:
        if self._worker is None:
            from llm_relay.sandbox.remote import WorkerClient

            self._worker = WorkerClient(settings=self.settings)
        return self._worker

    # --- request -----------------------------------------------------------
    def configuration(self, config: Mapping[str, Any] | None) -> dict[str, Any]:
        return merge_config(COMPUTER_USE_DEFAULTS, config)

    def headers(self, credential: str) -> dict[str, str]:
        return {**super().headers(credential), "anthropic-beta": COMPUTER_USE_BETA}

    def build_body(
        self,
        model: str,
        messages: list[ChatMessage],
        cfg: Mapping[str, Any],
        stream: bool,
    ) -> dict[str, Any]:
        extra = dict(cfg["extra"])
        try:
            width, height, display = (int(extra.pop(key)) for key in _DISPLAY_KEYS)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"{self.name}: display settings must be integers", exc) from exc
        kept = [
            ChatMessage(msg.role, msg.content.strip())
            for msg in messages
            if msg.content.strip()
        ]
        body = super().build_body(model, kept, {**cfg, "extra": extra}, stream)

        system = computer_use_prompt(datetime.now())
        if body.get("system"):
            system = f"{system}\n\n{body['system']}"
        body["system"] = system
        body["tools"] = computer_use_tools(width, height, display)
        return body

    # --- tool dispatch -----------------------------------------------------
    async def run_tool_use(self, block: ToolUseBlock) -> Optional[str]:
        """
        Send one finished block to the worker.

        Returns:
            The serialized ``tool_result``, or None when the block's input never
            formed a JSON object.
        """
        block.dispatched = True
        tool_input = block.input()
        if tool_input is None:
            self._log(
                f"Invalid JSON in tool use block {block.id}: {block.partial_json!r}",
                logging.WARNING,
            )
            return None

        self._log(f"Tool use block stopped: {block.name} {block.id}")
        try:
            if block.name not in COMPUTER_USE_TOOL_NAMES:
                raise ToolNotFound(block.name)
            if str(tool_input.get("path", "")).startswith(REPO_ROOT):
                await self.worker.dispatch("bash", {"command": f"mkdir -p {REPO_ROOT}"})
            output = await self.worker.dispatch(block.name, tool_input)
        except ToolError as exc:
            self._log(f"Tool {block.name} failed: {exc}", logging.WARNING)
            return tool_result_block(block.id, f"Error executing tool: {exc}", is_error=True)
        return tool_result_block(block.id, json.dumps(output, indent=2))

    # --- HTTP exchange -----------------------------------------------------
    async def execute(self, http: httpx.AsyncClient, request: PreparedRequest) -> str:
        response = await http.request(**request.send_kwargs())
        await self.raise_for_status(response)
        data = load_json(response.content)
        blocks = data.get("content") if isinstance(data, dict) else None
        if not isinstance(blocks, list):
            raise ResponseParsingError("Missing 'content' array in response")

        parts: list[str] = []
        for block in blocks:
            if not isinstance(block, dict):
                continue
            if block.get("type") == "text":
                parts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                pending = ToolUseBlock(
                    block.get("id", ""), block.get("name", ""), json.dumps(block.get("input") or {})
                )
                result = await self.run_tool_use(pending)
                if result:
                    parts.append(result)
        return "".join(parts)

    async def stream_response(
        self, response: httpx.Response
    ) -> AsyncGenerator[str, None]:
        block: Optional[ToolUseBlock] = None
        async with aclosing(sse_events(response.aiter_bytes())) as events:
            async for event in events:
                kind = event.get("type") if isinstance(event, dict) else None
                if kind == "content_block_start":
                    content = event.get("content_block") or {}
                    if content.get("type") == "tool_use" and content.get("id") and content.get("name"):
                        block = ToolUseBlock(content["id"], content["name"])
                        self._log(f"Tool use block started: {block.name} {block.id}")
                elif kind == "content_block_delta":
                    delta = event.get("delta") or {}
                    if delta.get("type") == "text_delta" and delta.get("text"):
                        yield delta["text"]
                    elif delta.get("type") == "input_json_delta" and block is not None:
                        block.partial_json += delta.get("partial_json") or ""
                elif kind == "content_block_stop" and block is not None and not block.dispatched:
                    result = await self.run_tool_use(block)
                    if result:
                        yield result
                elif kind == "message_delta":
                    stop_reason = extract_path(event, ("delta", "stop_reason"))
                    if stop_reason:
                        self._log(f"Message stopped: {stop_reason}", logging.DEBUG)

        # the upstream closed before the block's stop event
        if block is not None and not block.dispatched:
            result = await self.run_tool_use(block)
            if result:
                yield result
