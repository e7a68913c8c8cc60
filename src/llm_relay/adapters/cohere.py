"""Cohere chat adapter (NDJSON stream)."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from llm_relay.adapters.base import ChatAdapter, PreparedRequest, load_json
from llm_relay.errors import ResponseParsingError
from llm_relay.params import normalize_config
from llm_relay.provider import ProviderType
from llm_relay.streaming import NDJSONFraming, StreamFraming
from llm_relay.types import MessageLike, Role, coerce_messages

_ROLE_MAP = {
    Role.USER: "USER",
    Role.ASSISTANT: "CHATBOT",
    Role.SYSTEM: "SYSTEM",
    Role.TOOL: "USER",
}


def _text_generation(event: Any) -> Optional[str]:
    if not isinstance(event, dict):
        return None
    if event.get("event_type", "text-generation") != "text-generation":
        return None
    text = event.get("text")
    return text if isinstance(text, str) else None


class CohereChatAdapter(ChatAdapter):
    """The last message is sent as ``message``; earlier ones become ``chat_history``."""

    provider_type = ProviderType.COHERE
    default_url = "https://api.cohere.ai/v1/chat"

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
        model = self._model(cfg)
        msgs = coerce_messages(messages)
        last = msgs[-1].content if msgs else ""

        body: dict[str, Any] = {
            "model": model,
            "chat_history": [
                {"role": _ROLE_MAP[m.role], "message": m.content} for m in msgs[:-1]
            ],
            "message": last,
            "stream": stream,
        }
        if "temperature" in cfg:
            body["temperature"] = cfg["temperature"]
        if "max_tokens" in cfg:
            body["max_tokens"] = cfg["max_tokens"]
        if "top_p" in cfg:
            body["p"] = cfg["top_p"]
        if "top_k" in cfg:
            body["k"] = cfg["top_k"]
        if "stop" in cfg:
            stop = cfg["stop"]
            body["stop_sequences"] = [stop] if isinstance(stop, str) else list(stop)
        for key, value in cfg["extra"].items():
            body.setdefault(key, value)

        self._log(f"Prepared request for model {model} (Stream: {stream})")
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
        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise ResponseParsingError("Missing 'text' field in response")
        return text

    def framing(self) -> StreamFraming:
        return NDJSONFraming(_text_generation)
