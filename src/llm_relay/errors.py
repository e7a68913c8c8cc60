"""
Error taxonomy for llm-relay.

Every failure the package surfaces is a `RelayError`. Noisy SDK and transport
exceptions are translated by `classify_error`, which keeps the original
exception attached for full tracebacks.
"""

from __future__ import annotations

import logging
from typing import Any, Final, Optional, Type

import anthropic
import httpx
import openai

__all__: tuple[str, ...] = (
    "RelayError",
    "ConfigurationError",
    "ResponseParsingError",
    "ExternalServiceError",
    "PollTimeout",
    "ToolUseLimitExceeded",
    "ToolError",
    "ToolNotFound",
    "MissingParameter",
    "InvalidArgument",
    "ExecutionError",
    "ToolExternalServiceError",
    "classify_error",
)


class RelayError(RuntimeError):
    """Public package-level exception.

    Attributes:
        message: Human readable description, upstream text included verbatim.
        original_exc: The underlying exception, if one was wrapped.
    """

    original_exc: Optional[Exception]

    def __init__(self, message: str, original_exc: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_exc = original_exc
        if original_exc is not None:
            self.__cause__ = original_exc


class ConfigurationError(RelayError):
    """Missing or invalid static setup. Fatal, never retried."""


class ResponseParsingError(RelayError):
    """The upstream answered with a shape we did not expect."""

    def __init__(self, detail: str, original_exc: Optional[Exception] = None) -> None:
        super().__init__(f"Failed to parse response: {detail}", original_exc)
        self.detail = detail


class ExternalServiceError(RelayError):
    """Non-2xx answer or in-band error envelope from an upstream service.

    Retryable by the caller. The upstream body is kept untouched in ``body``.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Any = None,
        original_exc: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, original_exc)
        self.status_code = status_code
        self.body = body

    @classmethod
    def from_response(
        cls, status_code: int, reason: str, body: str
    ) -> "ExternalServiceError":
        return cls(
            f"LLM API error: Status {status_code} {reason}, Body: {body}",
            status_code=status_code,
            body=body,
        )


class PollTimeout(RelayError):
    """A bounded poll loop ran out of attempts."""

    def __init__(self, attempts: int, interval: float, subject: str = "job") -> None:
        super().__init__(
            f"Timed out waiting for {subject} after {attempts} attempts "
            f"({interval:g}s apart)"
        )
        self.attempts = attempts
        self.interval = interval


class ToolUseLimitExceeded(RelayError):
    """The model kept requesting tools past the configured round ceiling."""

    def __init__(self, rounds: int) -> None:
        super().__init__(f"Tool use did not settle after {rounds} rounds")
        self.rounds = rounds


# --- tool errors -----------------------------------------------------------
class ToolError(RelayError):
    """Base class for failures raised while resolving or running a tool."""


class ToolNotFound(ToolError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Tool not found: {name}")
        self.tool_name = name


class MissingParameter(ToolError):
    def __init__(self, parameter: str) -> None:
        super().__init__(f"Missing required parameter: {parameter}")
        self.parameter = parameter


class InvalidArgument(ToolError):
    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid argument: {detail}")
        self.detail = detail


class ExecutionError(ToolError):
    def __init__(self, detail: str, original_exc: Optional[Exception] = None) -> None:
        super().__init__(f"Execution error: {detail}", original_exc)
        self.detail = detail


class ToolExternalServiceError(ToolError):
    def __init__(
        self,
        detail: str,
        *,
        status_code: Optional[int] = None,
        original_exc: Optional[Exception] = None,
    ) -> None:
        super().__init__(f"External service error: {detail}", original_exc)
        self.detail = detail
        self.status_code = status_code


# --- classification --------------------------------------------------------
RATE_LIMIT_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.RateLimitError,
    anthropic.RateLimitError,
)

CONN_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIConnectionError,
    anthropic.APIConnectionError,
    httpx.TransportError,
    TimeoutError,
    ConnectionError,
)

API_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIError,
    anthropic.APIError,
    httpx.HTTPStatusError,
)


def _status_of(exc: Exception) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None and isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
    return status


def classify_error(
    exc: Exception,
    logger: Optional[logging.Logger] = None,
) -> RelayError:
    """Wrap an SDK or transport exception in ExternalServiceError.

    Exceptions that already belong to the package are returned untouched.
    """
    if isinstance(exc, RelayError):
        return exc

    log = logger or logging.getLogger("llm_relay.errors")
    status = _status_of(exc)

    if isinstance(exc, RATE_LIMIT_ERRORS) or status == 429:
        msg = "Rate-limit exceeded, please retry later"
    elif isinstance(exc, CONN_ERRORS):
        msg = "Connection problem, unable to reach the provider"
    elif isinstance(exc, API_ERRORS):
        msg = "Provider reported an error"
    else:
        msg = exc.__class__.__name__

    log.warning("Wrapping upstream exception: %s", exc.__class__.__name__)
    return ExternalServiceError(f"{msg}: {exc}", status_code=status, original_exc=exc)
