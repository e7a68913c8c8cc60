"""Gemini ``generateContent`` adapter."""

from __future__ import annotations

from typing import Any, Final, Iterable, Mapping, Optional

from llm_relay.adapters.base import ChatAdapter, PreparedRequest, load_json
from llm_relay.errors import ResponseParsingError
from llm_relay.params import normalize_config
from llm_relay.provider import ProviderType
from llm_relay.streaming import JSONArrayFraming, StreamFraming, raise_for_inband_error
from llm_relay.types import MessageLike, Role, coerce_messages

DEFAULT_MODEL: Final = "gemini-pro"

GENERATION_DEFAULTS: Final[dict[str, Any]] = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 1024,
}

SAFETY_SETTINGS: Final[list[dict[str, str]]] = [
    {"category": f"HARM_CATEGORY_{category}", "threshold": "BLOCK_ONLY_HIGH"}
    for category in ("HARASSMENT", "HATE_SPEECH", "SEXUALLY_EXPLICIT", "DANGEROUS_CONTENT")
]

# config key -> generationConfig key
_GENERATION_KEYS: Final[dict[str, str]] = {
    "temperature": "temperature",
    "top_k": "topK",
    "top_p": "topP",
    "max_tokens": "maxOutputTokens",
}


def candidate_text(obj: Any) -> Optional[str]:
    """Concatenate ``candidates[].content.parts[].text`` of one response object."""
    if not isinstance(obj, dict):
        return None
    texts: list[str] = []
    for candidate in obj.get("candidates") or []:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        for part in (content or {}).get("parts") or []:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                texts.append(part["text"])
    return "".join(texts) or None


class GeminiChatAdapter(ChatAdapter):
    """
    The model name lives in the URL path. Streaming answers are one JSON array
    of candidate objects which may be split anywhere across chunks.
    """

    provider_type = ProviderType.GEMINI
    default_url = "https://generativelanguage.googleapis.com/v1beta/models/{model}:{method}"

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
        model = self._model(cfg, DEFAULT_MODEL)
        method = "streamGenerateContent" if stream else "generateContent"
        url = (endpoint or self.default_url).format(model=model, method=method)

        contents: list[dict[str, Any]] = []
        system_parts: list[dict[str, str]] = []
        for msg in coerce_messages(messages):
            if msg.role is Role.SYSTEM:
                system_parts.append({"text": msg.content})
                continue
            role = "model" if msg.role is Role.ASSISTANT else "user"
            contents.append({"role": role, "parts": [{"text": msg.content}]})

        generation = dict(GENERATION_DEFAULTS)
        for key, target in _GENERATION_KEYS.items():
            if key in cfg:
                generation[target] = cfg[key]
        if "stop" in cfg:
            stop = cfg["stop"]
            generation["stopSequences"] = [stop] if isinstance(stop, str) else list(stop)

        body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation,
            "safetySettings": [dict(s) for s in SAFETY_SETTINGS],
        }
        if system_parts:
            body["systemInstruction"] = {"parts": system_parts}
        for key, value in cfg["extra"].items():
            body.setdefault(key, value)

        self._log(f"Prepared request for model {model} (Stream: {stream})")
        return PreparedRequest(
            method="POST",
            url=url,
            headers={"x-goog-api-key": credential, "Content-Type": "application/json"},
            json=body,
            stream=stream,
        )

    def parse_response(self, body: bytes | str | Any) -> str:
        data = load_json(body)
        objects = data if isinstance(data, list) else [data]
        if data is None or not all(isinstance(o, dict) for o in objects):
            raise ResponseParsingError("expected a JSON object or array of candidates")
        texts: list[str] = []
        for obj in objects:
            raise_for_inband_error(obj)
            texts.append(candidate_text(obj) or "")
        return "".join(texts)

    def framing(self) -> StreamFraming:
        return JSONArrayFraming(candidate_text)
