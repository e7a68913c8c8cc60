"""
Single round-trip image generation adapters (DALL-E, Stability).

Every image adapter answers with one sentinel-prefixed string,
``IMAGE_URL:<url>``, whether the caller asked for a buffered or a streamed
response.
"""

from __future__ import annotations

import asyncio
import uuid
from pathlib import Path
from typing import Any, AsyncGenerator, Final, Iterable, Mapping, Optional

import httpx

from llm_relay.adapters.base import ChatAdapter, PreparedRequest, load_json
from llm_relay.errors import ConfigurationError, ExternalServiceError, ResponseParsingError
from llm_relay.params import normalize_config
from llm_relay.provider import ProviderType
from llm_relay.streaming import extract_path
from llm_relay.types import MessageLike, coerce_messages

__all__ = [
    "IMAGE_URL_PREFIX",
    "image_result",
    "prompt_from",
    "ImageAdapter",
    "DalleImageAdapter",
    "StabilityImageAdapter",
]

IMAGE_URL_PREFIX: Final = "IMAGE_URL:"


def image_result(url: str) -> str:
    return f"{IMAGE_URL_PREFIX}{url}"


def prompt_from(messages: Iterable[MessageLike]) -> str:
    """The prompt is the most recent non-empty message."""
    for msg in reversed(coerce_messages(messages)):
        if msg.content.strip():
            return msg.content.strip()
    raise ConfigurationError("Image generation needs at least one non-empty message")


class ImageAdapter(ChatAdapter):
    """Image providers have no incremental framing: the stream is one item."""

    async def finish(self, body: bytes) -> str:
        return self.parse_response(body)

    async def execute(self, http: httpx.AsyncClient, request: PreparedRequest) -> str:
        response = await http.request(**request.send_kwargs())
        await self.raise_for_status(response)
        return await self.finish(response.content)

    async def stream_response(
        self, response: httpx.Response
    ) -> AsyncGenerator[str, None]:
        yield await self.finish(await response.aread())


class DalleImageAdapter(ImageAdapter):
    provider_type = ProviderType.DALLE
    default_url = "https://api.openai.com/v1/images/generations"

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
        extra = dict(cfg["extra"])
        body: dict[str, Any] = {
            "model": self._model(cfg),
            "prompt": prompt_from(messages),
            "n": extra.pop("n", 1),
            "size": extra.pop("size", "1024x1024"),
            "quality": extra.pop("quality", "standard"),
        }
        body.update(extra)
        self._log(f"Prepared image request for model {body['model']}")
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
        url = extract_path(load_json(body), ("data", 0, "url"))
        if not isinstance(url, str):
            raise ResponseParsingError("Missing 'data[0].url' in image response")
        return image_result(url)


_STABILITY_STATUS: Final[dict[int, str]] = {
    400: "Invalid parameters",
    401: "Invalid API key",
    403: "Content moderation: the request was flagged",
    404: "Resource not found",
    422: "Unprocessable request",
    429: "Rate limit exceeded: maximum 150 requests per 10 seconds",
    500: "Internal server error",
}


def _image_extension(data: bytes) -> str:
    if data.startswith(b"\xff\xd8"):
        return "jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return "png"


class StabilityImageAdapter(ImageAdapter):
    """
    Multipart upload answered with raw image bytes. The bytes are written to
    ``settings.temp_dir`` and exposed through the API's ``/temp-images`` route.
    """

    provider_type = ProviderType.STABILITY
    default_url = "https://api.stability.ai/v2beta/stable-image/generate/ultra"

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
        form: dict[str, Any] = {"prompt": (None, prompt_from(messages))}
        for key, value in cfg["extra"].items():
            form[key] = (None, str(value))
        self._log("Prepared image request")
        return PreparedRequest(
            method="POST",
            url=endpoint or self.default_url,
            headers={"Authorization": f"Bearer {credential}", "Accept": "image/*"},
            files=form,
            stream=stream,
        )

    def parse_response(self, body: bytes | str | Any) -> str:
        if isinstance(body, str):
            body = body.encode("latin-1")
        if not body:
            raise ResponseParsingError("Empty image body")
        temp_dir = Path(self.settings.temp_dir)
        temp_dir.mkdir(parents=True, exist_ok=True)
        file_name = f"{uuid.uuid4()}.{_image_extension(body)}"
        (temp_dir / file_name).write_bytes(body)
        self._log(f"Saved generated image to {temp_dir / file_name}")
        return image_result(f"{self.settings.api_url}/temp-images/{file_name}")

    async def finish(self, body: bytes) -> str:
        return await asyncio.to_thread(self.parse_response, body)

    def error_for_status(self, status: int, reason: str, body: str) -> ExternalServiceError:
        message = _STABILITY_STATUS.get(status, f"Unexpected status {status} {reason}")
        data = load_json(body)
        errors = data.get("errors") if isinstance(data, dict) else None
        if errors:
            message = f"{message}: {'; '.join(str(e) for e in errors)}"
        return ExternalServiceError(
            f"Stability API error: {message}", status_code=status, body=body
        )
