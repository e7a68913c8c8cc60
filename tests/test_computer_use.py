"""Claude computer use: the beta request shape and tool dispatch to the worker."""

import json
from datetime import datetime

import httpx
import pytest

from llm_relay import ChatClient
from llm_relay.adapters import AnthropicComputerAdapter, get_adapter
from llm_relay.adapters.anthropic import COMPUTER_USE_BETA, ToolUseBlock, computer_use_prompt
from llm_relay.errors import ConfigurationError
from llm_relay.provider import ProviderDescriptor, ProviderType
from llm_relay.sandbox import WorkerClient

from conftest import byte_stream

MODEL = "claude-3-5-sonnet-20241022"
MESSAGES = [{"role": "user", "content": "Click the OK button"}]
WORKER_ANSWER = {"name": "computer", "action": "click", "output": {"success": True, "output": "Performed click"}}


def sse(*events):
    return b"".join(f"data: {json.dumps(event)}\n\n".encode() for event in events)


def tool_use_events(tool_id, name, *fragments):
    return [
        {"type": "content_block_start", "index": 1,
         "content_block": {"type": "tool_use", "id": tool_id, "name": name, "input": {}}},
        *(
            {"type": "content_block_delta", "index": 1,
             "delta": {"type": "input_json_delta", "partial_json": fragment}}
            for fragment in fragments
        ),
        {"type": "content_block_stop", "index": 1},
    ]


TEXT_EVENTS = [
    {"type": "message_start", "message": {"id": "msg_1"}},
    {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
    {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Clicking now."}},
    {"type": "content_block_stop", "index": 0},
]
END_EVENTS = [
    {"type": "message_delta", "delta": {"stop_reason": "tool_use"}},
    {"type": "message_stop"},
]


class FakeWorker:
    """Records what the adapter posts to the worker."""

    def __init__(self, status=200, answer=None):
        self.status = status
        self.answer = WORKER_ANSWER if answer is None else answer
        self.calls = []

    def __call__(self, request):
        self.calls.append((request.url.path, json.loads(request.content)))
        if self.status != 200:
            return httpx.Response(self.status, text="worker exploded")
        return httpx.Response(200, json=self.answer)


def make_client(upstream_handler, worker, settings):
    upstream = httpx.AsyncClient(transport=httpx.MockTransport(upstream_handler))
    worker_http = httpx.AsyncClient(transport=httpx.MockTransport(worker))
    adapter = AnthropicComputerAdapter(
        settings, worker=WorkerClient(http_client=worker_http, settings=settings)
    )
    descriptor = ProviderDescriptor("claude-computer", configuration={"model": MODEL})
    client = ChatClient(descriptor, "ak-test", adapter=adapter, http_client=upstream, settings=settings)
    return client, upstream, worker_http


def streaming(body, chunk_size=None):
    chunks = [body] if chunk_size is None else [
        body[i:i + chunk_size] for i in range(0, len(body), chunk_size)
    ]
    return lambda request: httpx.Response(200, content=byte_stream(chunks))


class TestComputerUseRequest:
    def test_beta_request_shape(self):
        request = AnthropicComputerAdapter().prepare_request(
            [
                {"role": "system", "content": "Prefer bash."},
                {"role": "user", "content": "  open a terminal "},
                {"role": "assistant", "content": "   "},
            ],
            {"model": MODEL, "display_width_px": 1280, "display_height_px": 800},
            "ak-test",
        )

        assert request.url == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "ak-test"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert request.headers["anthropic-beta"] == COMPUTER_USE_BETA

        body = request.json
        assert body["model"] == MODEL
        assert body["max_tokens"] == 4096
        assert body["stream"] is True
        assert body["messages"] == [{"role": "user", "content": "open a terminal"}]
        assert body["tools"] == [
            {
                "type": "computer_20241022",
                "name": "computer",
                "display_width_px": 1280,
                "display_height_px": 800,
                "display_number": 1,
            },
            {"type": "text_editor_20241022", "name": "str_replace_editor"},
            {"type": "bash_20241022", "name": "bash"},
        ]
        assert body["system"].startswith("You are Claude, an AI assistant with access to a virtual computer.")
        assert body["system"].endswith("\n\nPrefer bash.")
        assert "display_width_px" not in body

    def test_max_tokens_override(self):
        request = AnthropicComputerAdapter().prepare_request(
            MESSAGES, {"model": MODEL, "max_tokens": 1024}, "ak-test"
        )
        assert request.json["max_tokens"] == 1024

    def test_model_is_required(self):
        with pytest.raises(ConfigurationError, match="'model' is required"):
            AnthropicComputerAdapter().prepare_request(MESSAGES, {}, "ak-test")

    def test_display_settings_must_be_integers(self):
        with pytest.raises(ConfigurationError, match="display settings"):
            AnthropicComputerAdapter().prepare_request(
                MESSAGES, {"model": MODEL, "display_number": "main"}, "ak-test"
            )

    def test_prompt_carries_current_date(self):
        prompt = computer_use_prompt(datetime(2024, 10, 22, 9, 30))
        assert "The current date is Tuesday, October 22, 2024" in prompt

    def test_provider_tag(self):
        assert ProviderType.parse("anthropic-computer") is ProviderType.ANTHROPIC_COMPUTER
        assert isinstance(get_adapter("claude-computer"), AnthropicComputerAdapter)


class TestToolUseBlock:
    def test_input_needs_every_fragment(self):
        block = ToolUseBlock("toolu_1", "bash")
        block.partial_json += '{"command": "l'
        assert block.input() is None

        block.partial_json += 's -la"}'
        assert block.input() == {"command": "ls -la"}

    def test_non_object_input(self):
        assert ToolUseBlock("toolu_1", "bash", "[1, 2]").input() is None


class TestComputerUseStream:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("chunk_size", [None, 1, 7, 64])
    async def test_split_tool_input_is_assembled_and_dispatched(self, chunk_size, settings):
        body = sse(
            *TEXT_EVENTS,
            *tool_use_events("toolu_1", "computer", '{"action": "left_', 'click", "coordinate": ', "[10, 20]}"),
            *END_EVENTS,
        )
        worker = FakeWorker()
        client, upstream, worker_http = make_client(streaming(body, chunk_size), worker, settings)

        async with upstream, worker_http:
            deltas = [delta async for delta in client.stream(MESSAGES)]

        assert worker.calls == [("/computer-use/computer", {"action": "click", "x": 10, "y": 20})]
        assert deltas[0] == "Clicking now."
        result = json.loads(deltas[1])
        assert result["type"] == "tool_result"
        assert result["tool_use_id"] == "toolu_1"
        assert "is_error" not in result
        assert json.loads(result["content"][0]["text"]) == WORKER_ANSWER
        assert len(deltas) == 2

    @pytest.mark.asyncio
    async def test_worker_failure_becomes_error_result(self, settings):
        body = sse(*tool_use_events("toolu_2", "bash", '{"command": "ls"}'), *END_EVENTS)
        worker = FakeWorker(status=500)
        client, upstream, worker_http = make_client(streaming(body), worker, settings)

        async with upstream, worker_http:
            deltas = [delta async for delta in client.stream(MESSAGES)]

        result = json.loads(deltas[0])
        assert result["is_error"] is True
        assert result["tool_use_id"] == "toolu_2"
        assert result["content"][0]["text"].startswith("Error executing tool: External service error: bash answered 500")

    @pytest.mark.asyncio
    async def test_unknown_tool_is_not_sent_to_worker(self, settings):
        body = sse(*tool_use_events("toolu_3", "browser", '{"url": "https://example.com"}'))
        worker = FakeWorker()
        client, upstream, worker_http = make_client(streaming(body), worker, settings)

        async with upstream, worker_http:
            deltas = [delta async for delta in client.stream(MESSAGES)]

        assert worker.calls == []
        assert "Tool not found: browser" in json.loads(deltas[0])["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_unparseable_input_is_skipped(self, settings):
        body = sse(*TEXT_EVENTS, *tool_use_events("toolu_4", "bash", '{"command": '), *END_EVENTS)
        worker = FakeWorker()
        client, upstream, worker_http = make_client(streaming(body), worker, settings)

        async with upstream, worker_http:
            deltas = [delta async for delta in client.stream(MESSAGES)]

        assert deltas == ["Clicking now."]
        assert worker.calls == []

    @pytest.mark.asyncio
    async def test_block_without_stop_runs_at_end_of_stream(self, settings):
        events = tool_use_events("toolu_5", "bash", '{"command": "pwd"}')[:-1]
        worker = FakeWorker(answer={"name": "bash", "output": {"success": True, "output": "/repo"}})
        client, upstream, worker_http = make_client(streaming(sse(*events)), worker, settings)

        async with upstream, worker_http:
            deltas = [delta async for delta in client.stream(MESSAGES)]

        assert worker.calls == [("/computer-use/bash", {"command": "pwd"})]
        assert json.loads(deltas[0])["tool_use_id"] == "toolu_5"


class TestComputerUseBuffered:
    @pytest.mark.asyncio
    async def test_repo_paths_create_the_repo_first(self, settings):
        answer = {
            "content": [
                {"type": "text", "text": "Writing the file."},
                {
                    "type": "tool_use",
                    "id": "toolu_6",
                    "name": "str_replace_editor",
                    "input": {"command": "create", "path": "/repo/app.py", "file_text": "print(1)\n"},
                },
            ]
        }
        seen = []

        def upstream_handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=answer)

        worker = FakeWorker()
        client, upstream, worker_http = make_client(upstream_handler, worker, settings)

        async with upstream, worker_http:
            text = await client.chat(MESSAGES)

        assert seen[0]["stream"] is False
        assert worker.calls == [
            ("/computer-use/bash", {"command": "mkdir -p /repo"}),
            ("/computer-use/text-editor", {"command": "create", "path": "/repo/app.py", "text": "print(1)\n"}),
        ]
        assert text.startswith("Writing the file.")
        assert json.loads(text[len("Writing the file."):])["tool_use_id"] == "toolu_6"
