"""Function-calling adapters, the orchestrator and multi-round tool use."""

import json

import httpx
import pytest
from anthropic.types import Message
from openai.types.chat import ChatCompletion

from llm_relay import ChatClient
from llm_relay.errors import (
    ConfigurationError,
    InvalidArgument,
    ResponseParsingError,
    ToolNotFound,
    ToolUseLimitExceeded,
)
from llm_relay.function_calling import (
    AnthropicToolCallAdapter,
    FailurePolicy,
    FunctionCallingOrchestrator,
    OpenAIToolCallAdapter,
    ToolUseSession,
    get_tool_call_adapter,
)
from llm_relay.function_calling.anthropic import AUTO_STEER, NONE_STEER, REQUIRED_STEER
from llm_relay.provider import ProviderDescriptor
from llm_relay.tools import (
    FunctionTool,
    ParameterType,
    ToolDefinition,
    ToolParameter,
    ToolRegistry,
    WeatherTool,
    default_registry,
)
from llm_relay.types import ToolChoice, ToolResult

WEATHER = WeatherTool().definition
MESSAGES = [{"role": "user", "content": "What's the weather in Paris?"}]


def openai_tool_response(*calls, content=None):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "gpt-4o",
        "choices": [
            {
                "index": 0,
                "finish_reason": "tool_calls" if calls else "stop",
                "message": {
                    "role": "assistant",
                    "content": content,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {"name": name, "arguments": arguments},
                        }
                        for call_id, name, arguments in calls
                    ]
                    or None,
                },
            }
        ],
    }


def anthropic_tool_response(*calls, text=None):
    content = [{"type": "text", "text": text}] if text else []
    content += [
        {"type": "tool_use", "id": call_id, "name": name, "input": arguments}
        for call_id, name, arguments in calls
    ]
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "model": "claude-3-5-sonnet",
        "content": content,
        "stop_reason": "tool_use" if calls else "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 10, "output_tokens": 5},
    }


class TestOpenAIToolCallAdapter:
    adapter = OpenAIToolCallAdapter()

    def test_format_tools(self):
        assert self.adapter.format_tools([WEATHER]) == [
            {
                "type": "function",
                "function": {
                    "name": "get_weather",
                    "description": WEATHER.description,
                    "parameters": WEATHER.to_json_schema(),
                },
            }
        ]

    @pytest.mark.parametrize(
        "choice, expected",
        [
            (ToolChoice.AUTO, "auto"),
            (ToolChoice.REQUIRED, "required"),
            (ToolChoice.NONE, "none"),
            (ToolChoice.specific("get_weather"), {"type": "function", "function": {"name": "get_weather"}}),
        ],
    )
    def test_format_tool_choice(self, choice, expected):
        assert self.adapter.format_tool_choice(choice) == expected

    def test_prepare_request_body(self):
        body = {"model": "gpt-4o", "messages": MESSAGES}
        self.adapter.prepare_request(body, [WEATHER], ToolChoice.REQUIRED)

        assert body["tool_choice"] == "required"
        assert body["tools"][0]["function"]["name"] == "get_weather"

    def test_parse_tool_calls_in_order(self):
        response = openai_tool_response(
            ("call_1", "get_weather", '{"location": "Paris, France"}'),
            ("call_2", "calculate", '{"expression": "1 + 1"}'),
        )

        calls = self.adapter.parse_tool_calls(response)

        assert [(c.id, c.name) for c in calls] == [("call_1", "get_weather"), ("call_2", "calculate")]
        assert calls[0].arguments == {"location": "Paris, France"}

    def test_plain_reply_has_no_calls(self):
        assert self.adapter.parse_tool_calls(openai_tool_response(content="Sunny")) == []
        assert self.adapter.parse_tool_calls({"choices": []}) == []

    def test_empty_arguments(self):
        calls = self.adapter.parse_tool_calls(openai_tool_response(("c", "ping", "")))
        assert calls[0].arguments == {}

    def test_missing_choices(self):
        with pytest.raises(ResponseParsingError, match="Missing 'choices' array in response"):
            self.adapter.parse_tool_calls({"id": "x"})

    def test_missing_function_name(self):
        response = openai_tool_response(("call_1", "", "{}"))
        with pytest.raises(ResponseParsingError, match="Missing 'name'"):
            self.adapter.parse_tool_calls(response)

    def test_invalid_json_arguments(self):
        response = openai_tool_response(("call_1", "get_weather", "{not valid json"))
        with pytest.raises(ResponseParsingError, match="Invalid JSON arguments in tool call call_1"):
            self.adapter.parse_tool_calls(response)

    def test_sdk_completion_object(self):
        """Typed SDK responses parse like decoded JSON."""
        completion = ChatCompletion.model_validate(
            openai_tool_response(("id1", "test", '{"query": "llm"}'))
        )

        calls = self.adapter.parse_tool_calls(completion)

        assert len(calls) == 1
        assert calls[0].id == "id1"
        assert calls[0].name == "test"
        assert calls[0].arguments == {"query": "llm"}

    def test_conversation_messages(self):
        response = openai_tool_response(("call_1", "get_weather", '{"location": "Paris"}'))

        assistant = self.adapter.assistant_message(response)
        tool_messages = self.adapter.tool_result_messages(
            [ToolResult("call_1", {"temperature": 22.5}), ToolResult("call_2", "plain")]
        )

        assert assistant["role"] == "assistant"
        assert assistant["tool_calls"][0]["function"]["arguments"] == '{"location": "Paris"}'
        assert tool_messages == [
            {"role": "tool", "tool_call_id": "call_1", "content": '{"temperature": 22.5}'},
            {"role": "tool", "tool_call_id": "call_2", "content": "plain"},
        ]


class TestAnthropicToolCallAdapter:
    adapter = AnthropicToolCallAdapter()

    def test_format_tools(self):
        assert self.adapter.format_tools([WEATHER]) == [
            {
                "name": "get_weather",
                "description": WEATHER.description,
                "input_schema": WEATHER.to_json_schema(),
            }
        ]

    @pytest.mark.parametrize(
        "choice, expected",
        [
            (ToolChoice.AUTO, None),
            (ToolChoice.REQUIRED, True),
            (ToolChoice.NONE, False),
            (ToolChoice.specific("get_weather"), {"name": "get_weather"}),
        ],
    )
    def test_format_tool_choice(self, choice, expected):
        assert self.adapter.format_tool_choice(choice) == expected

    @pytest.mark.parametrize(
        "choice, sentence",
        [
            (ToolChoice.REQUIRED, REQUIRED_STEER),
            (ToolChoice.NONE, NONE_STEER),
            (ToolChoice.AUTO, AUTO_STEER),
            (ToolChoice.specific("get_weather"), "You must use the get_weather tool to answer this query."),
        ],
    )
    def test_steering_sentence_is_appended(self, choice, sentence):
        body = {"system": "You are a helpful assistant.", "messages": MESSAGES}
        self.adapter.prepare_request(body, [WEATHER], choice)

        assert body["system"] == f"You are a helpful assistant.\n\n{sentence}"
        assert body["tools"][0]["name"] == "get_weather"

    def test_steering_is_replaced_not_stacked(self):
        body = {"messages": MESSAGES}
        self.adapter.prepare_request(body, [WEATHER], ToolChoice.REQUIRED)
        self.adapter.prepare_request(body, [WEATHER], ToolChoice.AUTO)

        assert body["system"] == AUTO_STEER

    def test_user_paragraphs_survive_re_preparation(self):
        system = "Rules:\n\n\n\nYou must use the ruler tool to answer this query.\n\nBe brief."
        body = {"system": system, "messages": MESSAGES}
        self.adapter.prepare_request(body, [WEATHER], ToolChoice.REQUIRED)
        self.adapter.prepare_request(body, [WEATHER], ToolChoice.specific("get_weather"))

        assert body["system"] == (
            f"{system}\n\nYou must use the get_weather tool to answer this query."
        )

    def test_list_system_prompt(self):
        body = {"system": [{"type": "text", "text": "Be terse."}]}
        self.adapter.prepare_request(body, [WEATHER], ToolChoice.NONE)
        self.adapter.prepare_request(body, [WEATHER], ToolChoice.NONE)

        assert body["system"] == [
            {"type": "text", "text": "Be terse."},
            {"type": "text", "text": NONE_STEER},
        ]

    def test_parse_tool_use_blocks(self):
        response = anthropic_tool_response(
            ("toolu_1", "get_weather", {"location": "Paris"}), text="Let me check."
        )

        calls = self.adapter.parse_tool_calls(response)

        assert [(c.id, c.name, c.arguments) for c in calls] == [
            ("toolu_1", "get_weather", {"location": "Paris"})
        ]
        assert self.adapter.reply_text(response) == "Let me check."

    def test_missing_content(self):
        with pytest.raises(ResponseParsingError, match="Missing 'content' array in response"):
            self.adapter.parse_tool_calls({"type": "message"})

    def test_sdk_message_object(self):
        message = Message.model_validate(
            anthropic_tool_response(("toolu_9", "search_web", {"query": "rust"}))
        )

        calls = self.adapter.parse_tool_calls(message)

        assert calls[0].id == "toolu_9"
        assert calls[0].arguments == {"query": "rust"}

    def test_results_share_one_user_message(self):
        messages = self.adapter.tool_result_messages(
            [ToolResult("toolu_1", {"ok": True}), ToolResult("toolu_2", "done")]
        )

        assert messages == [
            {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": "toolu_1", "content": '{"ok": true}'},
                    {"type": "tool_result", "tool_use_id": "toolu_2", "content": "done"},
                ],
            }
        ]
        assert self.adapter.tool_result_messages([]) == []


class TestToolCallAdapterRegistry:
    @pytest.mark.parametrize("tag, adapter_cls", [
        ("gpt", OpenAIToolCallAdapter),
        ("openai", OpenAIToolCallAdapter),
        ("claude", AnthropicToolCallAdapter),
    ])
    def test_supported(self, tag, adapter_cls):
        assert isinstance(get_tool_call_adapter(tag), adapter_cls)

    @pytest.mark.parametrize("tag", ["gemini", "command", "bogus"])
    def test_unsupported(self, tag):
        with pytest.raises(ConfigurationError):
            get_tool_call_adapter(tag)


class TestRoundTrip:
    """Advertised tools come back intact from a model that echoes a call."""

    ARGS = {"location": "Paris, France", "units": "celsius"}

    def echo_handler(self, provider):
        def handler(request):
            body = json.loads(request.content)
            tool = body["tools"][0]
            if provider == "openai":
                name = tool["function"]["name"]
                return httpx.Response(200, json=openai_tool_response(("call_1", name, json.dumps(self.ARGS))))
            return httpx.Response(200, json=anthropic_tool_response(("toolu_1", tool["name"], self.ARGS)))

        return handler

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tag, provider", [("gpt", "openai"), ("claude", "anthropic")])
    async def test_format_then_parse(self, tag, provider, settings):
        adapter = get_tool_call_adapter(tag)
        tools = [WEATHER, ToolDefinition("noop", "Does nothing")]
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.echo_handler(provider)))
        client = ChatClient(
            ProviderDescriptor(tag, configuration={"model": "m"}), "k", http_client=http, settings=settings
        )
        request = client.prepare(MESSAGES, stream=False)
        adapter.prepare_request(request, tools, ToolChoice.REQUIRED)

        async with http:
            response = await client.complete_json(request)

        calls = adapter.parse_tool_calls(response)
        assert calls[0].name in {t.name for t in tools}
        assert calls[0].arguments == self.ARGS


class TestOrchestrator:
    @pytest.mark.asyncio
    async def test_calls_run_in_order(self):
        order = []
        registry = ToolRegistry()
        for name in ("first", "second"):
            await registry.register(
                FunctionTool(ToolDefinition(name, name), lambda args, name=name: order.append(name) or name)
            )
        orchestrator = FunctionCallingOrchestrator(OpenAIToolCallAdapter(), registry)

        results = await orchestrator.handle_response(
            openai_tool_response(("c2", "second", "{}"), ("c1", "first", "{}"))
        )

        assert order == ["second", "first"]
        assert results == [ToolResult("c2", "second"), ToolResult("c1", "first")]

    @pytest.mark.asyncio
    async def test_plain_reply(self):
        orchestrator = FunctionCallingOrchestrator(OpenAIToolCallAdapter(), ToolRegistry())
        assert await orchestrator.handle_response(openai_tool_response(content="Hi")) == []

    @pytest.mark.asyncio
    async def test_weather_result(self):
        orchestrator = FunctionCallingOrchestrator.for_provider("claude", await default_registry())

        results = await orchestrator.handle_response(
            anthropic_tool_response(("toolu_1", "get_weather", {"location": "Paris, France"}))
        )

        assert results[0].tool_call_id == "toolu_1"
        assert results[0].result["temperature"] == 22.5
        assert orchestrator.provider_name == "anthropic"

    @pytest.mark.asyncio
    async def test_abort_policy_stops_at_first_failure(self):
        calls = []
        registry = ToolRegistry()
        await registry.register(FunctionTool(ToolDefinition("later", "d"), calls.append))
        orchestrator = FunctionCallingOrchestrator(OpenAIToolCallAdapter(), registry)

        with pytest.raises(ToolNotFound):
            await orchestrator.handle_response(
                openai_tool_response(("c1", "missing", "{}"), ("c2", "later", "{}"))
            )

        assert calls == []

    @pytest.mark.asyncio
    async def test_continue_policy_records_errors(self):
        orchestrator = FunctionCallingOrchestrator(
            OpenAIToolCallAdapter(), await default_registry(), policy=FailurePolicy.CONTINUE
        )

        results = await orchestrator.handle_response(
            openai_tool_response(
                ("c1", "calculate", '{"expression": "1 / 0"}'),
                ("c2", "calculate", '{"expression": "6 * 7"}'),
            )
        )

        assert results[0].result == {"error": str(InvalidArgument("Division by zero is not allowed"))}
        assert results[1].result == {"expression": "6 * 7", "result": 42.0}

    @pytest.mark.asyncio
    async def test_prepare_request_advertises_registered_tools(self):
        orchestrator = FunctionCallingOrchestrator(OpenAIToolCallAdapter(), await default_registry())
        body = {"messages": MESSAGES}

        await orchestrator.prepare_request(body, ToolChoice.specific("calculate"))

        assert [t["function"]["name"] for t in body["tools"]] == ["get_weather", "search_web", "calculate"]
        assert body["tool_choice"] == {"type": "function", "function": {"name": "calculate"}}


class TestToolUseSession:
    async def make_session(self, handler, settings, tag="gpt", max_rounds=5):
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = ChatClient(
            ProviderDescriptor(tag, configuration={"model": "m"}), "k", http_client=http, settings=settings
        )
        orchestrator = FunctionCallingOrchestrator.for_provider(tag, await default_registry())
        return ToolUseSession(client, orchestrator, max_rounds=max_rounds), http

    @pytest.mark.asyncio
    async def test_tool_round_then_answer(self, settings):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            if len(seen) == 1:
                return httpx.Response(200, json=openai_tool_response(
                    ("call_1", "get_weather", '{"location": "Paris, France"}')
                ))
            return httpx.Response(200, json=openai_tool_response(content="It is 22.5C in Paris."))

        session, http = await self.make_session(handler, settings)
        async with http:
            outcome = await session.run(MESSAGES, ToolChoice.REQUIRED)

        assert outcome.reply == "It is 22.5C in Paris."
        assert outcome.rounds == 2
        assert [r.tool_call_id for r in outcome.results] == ["call_1"]
        assert seen[0]["tool_choice"] == "required"
        assert seen[1]["tool_choice"] == "auto"
        assert [m["role"] for m in seen[1]["messages"]] == ["user", "assistant", "tool"]
        assert seen[1]["messages"][2]["tool_call_id"] == "call_1"

    @pytest.mark.asyncio
    async def test_anthropic_session(self, settings):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            if len(seen) == 1:
                return httpx.Response(200, json=anthropic_tool_response(
                    ("toolu_1", "calculate", {"expression": "10 / 2"})
                ))
            return httpx.Response(200, json=anthropic_tool_response(text="The answer is 5."))

        session, http = await self.make_session(handler, settings, tag="claude")
        async with http:
            outcome = await session.run(MESSAGES)

        assert outcome.reply == "The answer is 5."
        assert outcome.results[0].result == {"expression": "10 / 2", "result": 5.0}
        last_message = seen[1]["messages"][-1]
        assert last_message["role"] == "user"
        assert last_message["content"][0]["tool_use_id"] == "toolu_1"

    @pytest.mark.asyncio
    async def test_round_ceiling(self, settings):
        def handler(request):
            return httpx.Response(200, json=openai_tool_response(
                ("call_x", "calculate", '{"expression": "1 + 1"}')
            ))

        session, http = await self.make_session(handler, settings, max_rounds=2)
        async with http:
            with pytest.raises(ToolUseLimitExceeded) as exc_info:
                await session.run(MESSAGES)

        assert exc_info.value.rounds == 2
