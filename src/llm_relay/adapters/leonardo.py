"""Leonardo image generation: submit a job, then poll until it settles."""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import Any, AsyncGenerator, Final, Iterable, Mapping, Optional

import httpx

from llm_relay.adapters.base import PreparedRequest, load_json
from llm_relay.adapters.images import ImageAdapter, image_result, prompt_from
from llm_relay.errors import ExternalServiceError, PollTimeout, ResponseParsingError
from llm_relay.params import normalize_config
from llm_relay.provider import ProviderType
from llm_relay.streaming import extract_path
from llm_relay.types import MessageLike

__all__ = ["PollState", "GenerationPoll", "LeonardoImageAdapter", "PHOENIX_MODEL_ID"]

PHOENIX_MODEL_ID: Final = "6b645e3a-d64f-4341-a6d8-7a3690fbf042"


class PollState(StrEnum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETE = "complete"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


_TERMINAL: Final = frozenset({PollState.COMPLETE, PollState.TIMED_OUT, PollState.FAILED})


class GenerationPoll:
    """
    Explicit state machine for one submitted generation job.

    ``Submitted -> Polling -> {Complete, TimedOut, Failed}``. Polling is bounded
    by ``attempts`` tries spaced ``interval`` seconds apart.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        status_url: str,
        headers: dict[str, str],
        *,
        interval: float,
        attempts: int,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.http = http
        self.status_url = status_url
        self.headers = headers
        self.interval = interval
        self.attempts = attempts
        self.logger = logger or logging.getLogger(__name__)
        self.state = PollState.SUBMITTED
        self.attempts_made = 0
        self.result: Optional[str] = None

    def _transition(self, state: PollState) -> None:
        if self.state in _TERMINAL:
            raise RuntimeError(f"poll already finished in state {self.state}")
        self.logger.debug("Generation poll %s -> %s", self.state, state)
        self.state = state

    async def run(self) -> str:
        self._transition(PollState.POLLING)
        while self.attempts_made < self.attempts:
            await asyncio.sleep(self.interval)
            self.attempts_made += 1
            response = await self.http.get(self.status_url, headers=self.headers)
            if not response.is_success:
                self._transition(PollState.FAILED)
                raise ExternalServiceError.from_response(
                    response.status_code, response.reason_phrase, response.text
                )
            job = extract_path(load_json(response.content), ("generations_by_pk",))
            status = job.get("status") if isinstance(job, dict) else None
            if status == "COMPLETE":
                url = extract_path(job, ("generated_images", 0, "url"))
                if not isinstance(url, str):
                    self._transition(PollState.FAILED)
                    raise ResponseParsingError("Completed generation has no image URL")
                self._transition(PollState.COMPLETE)
                self.result = image_result(url)
                return self.result
            if status == "FAILED":
                self._transition(PollState.FAILED)
                raise ExternalServiceError(
                    "Leonardo generation failed", body=response.text
                )
        self._transition(PollState.TIMED_OUT)
        raise PollTimeout(self.attempts, self.interval, subject="Leonardo generation")


class LeonardoImageAdapter(ImageAdapter):
    provider_type = ProviderType.LEONARDO
    default_url = "https://cloud.leonardo.ai/api/rest/v1/generations"

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
        body: dict[str, Any] = {k: v for k, v in cfg.items() if k not in ("extra", "model")}
        body.update(cfg["extra"])
        body["prompt"] = prompt_from(messages)
        body.setdefault("modelId", PHOENIX_MODEL_ID)
        self._log(f"Prepared generation job for model {body['modelId']}")
        return PreparedRequest(
            method="POST",
            url=endpoint or self.default_url,
            headers={
                "Authorization": f"Bearer {credential}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            json=body,
            stream=stream,
        )

    def parse_submission(self, body: bytes | str | Any) -> str:
        generation_id = extract_path(load_json(body), ("sdGenerationJob", "generationId"))
        if not isinstance(generation_id, str):
            raise ResponseParsingError("Missing 'sdGenerationJob.generationId' in response")
        return generation_id

    def parse_response(self, body: bytes | str | Any) -> str:
        url = extract_path(load_json(body), ("generations_by_pk", "generated_images", 0, "url"))
        if not isinstance(url, str):
            raise ResponseParsingError("Missing generated image URL in response")
        return image_result(url)

    async def execute(self, http: httpx.AsyncClient, request: PreparedRequest) -> str:
        response = await http.request(**request.send_kwargs())
        await self.raise_for_status(response)
        generation_id = self.parse_submission(response.content)
        self._log(f"Submitted generation {generation_id}")

        poll = GenerationPoll(
            http,
            f"{request.url.rstrip('/')}/{generation_id}",
            {k: v for k, v in request.headers.items() if k != "Content-Type"},
            interval=self.settings.poll_interval,
            attempts=self.settings.poll_attempts,
            logger=self.logger,
        )
        return await poll.run()

    async def stream(
        self, http: httpx.AsyncClient, request: PreparedRequest
    ) -> AsyncGenerator[str, None]:
        yield await self.execute(http, request)
