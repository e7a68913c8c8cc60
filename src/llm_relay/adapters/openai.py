"""OpenAI-compatible chat adapters (OpenAI, Mistral, Perplexity, Grok)."""

from __future__ import annotations

import json
from typing import Any, ClassVar, Iterable, Mapping, Optional

from llm_relay.adapters.base import ChatAdapter, PreparedRequest, body_text, load_json
from llm_relay.errors import ResponseParsingError
from llm_relay.params import normalize_config
from llm_relay.provider import ProviderType
from llm_relay.streaming import SSEFraming, StreamFraming, extract_path
from llm_relay.types import MessageLike, coerce_messages

_SAMPLING_KEYS = ("temperature", "max_tokens", "top_p", "stop")


class OpenAIChatAdapter(ChatAdapter):
    """Chat Completions wire format: bearer auth, SSE with a ``[DONE]`` sentinel."""

    provider_type = ProviderType.OPENAI
    default_url = "https://api.openai.com/v1/chat/completions"
    default_model: ClassVar[Optional[str]] = "gpt-3.5-turbo"
    sampling_defaults: ClassVar[dict[str, Any]] = {}
    # When set, a buffered body without message content is an error instead
    # of being returned verbatim.
    strict_content: ClassVar[bool] = False

    def prepare_request(
        self,
        messages: Iterable[MessageLike],
        config: Mapping[str, Any] | None,
        credential: str,
        *,
        endpoint: Optional[str] = None,
        stream: bool = True,
    ) -> PreparedRequest:
        cfg = normalize_config(config)
        body: dict[str, Any] = {
            "model": self._model(cfg, self.default_model),
            "messages": [m.as_dict() for m in coerce_messages(messages)],
            "stream": stream,
        }
        for key in _SAMPLING_KEYS:
            value = cfg.get(key, self.sampling_defaults.get(key))
            if value is not None:
                body[key] = value
        for key, value in cfg["extra"].items():
            body.setdefault(key, value)

        self._log(f"Prepared request for model {body['model']} (Stream: {stream})")
        return PreparedRequest(
            method="POST",
            url=endpoint or self.default_url,
            headers={
                "Authorization": f"Bearer {credential}",
                "Content-Type": "application/json",
            },
            json=body,
            stream=stream,
        )

    def parse_response(self, body: bytes | str | Any) -> str:
        data = load_json(body)
        content = extract_path(data, ("choices", 0, "message", "content"))
        if isinstance(content, str):
            return content
        if self.strict_content:
            raise ResponseParsingError("no content at choices[0].message.content")
        if data is not None:
            return json.dumps(data)
        return body_text(body)

    def framing(self) -> StreamFraming:
        return SSEFraming(("choices", 0, "delta", "content"))


class MistralChatAdapter(OpenAIChatAdapter):
    provider_type = ProviderType.MISTRAL
    default_url = "https://api.mistral.ai/v1/chat/completions"
    default_model = None


class PerplexityChatAdapter(OpenAIChatAdapter):
    provider_type = ProviderType.PERPLEXITY
    default_url = "https://api.perplexity.ai/chat/completions"
    default_model = None
    sampling_defaults = {"max_tokens": 1024, "temperature": 0.7, "top_p": 0.9}
    strict_content = True


class GrokChatAdapter(OpenAIChatAdapter):
    provider_type = ProviderType.GROK
    default_url = "https://api.x.ai/v1/chat/completions"
    default_model = "grok-beta"
