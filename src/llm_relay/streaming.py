"""
Turn raw upstream bytes into canonical text deltas.

A `StreamNormalizer` owns a carry-over buffer and delegates recognition of the
provider's wire framing to a `StreamFraming`:

- `SSEFraming`: ``data: {...}`` lines, optional end sentinel (``[DONE]``).
- `NDJSONFraming`: one bare JSON object per line.
- `JSONArrayFraming`: a single JSON array whose elements arrive split across
  chunk boundaries.

Malformed fragments are skipped. An explicit in-band error object ends the
stream with `ExternalServiceError`.
"""
from __future__ import annotations

import codecs
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncGenerator, AsyncIterable, Callable, Final, Optional, Sequence

from llm_relay.errors import ExternalServiceError

__all__ = [
    "StreamFraming",
    "SSEFraming",
    "NDJSONFraming",
    "JSONArrayFraming",
    "StreamNormalizer",
    "extract_path",
    "sse_events",
]

_logger = logging.getLogger(__name__)

# Returned by a framing when the upstream signalled the end of the stream.
_END: Final = object()

TextExtractor = Callable[[Any], Optional[str]]


def extract_path(obj: Any, path: Sequence[str | int]) -> Any:
    """Walk ``obj`` along ``path``; returns None as soon as a step is missing."""
    current = obj
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def raise_for_inband_error(obj: Any) -> None:
    """Raise ExternalServiceError if ``obj`` is a provider error envelope."""
    if not isinstance(obj, dict):
        return
    error = obj.get("error")
    if not error and obj.get("type") != "error":
        return
    if isinstance(error, dict):
        message = error.get("message") or error.get("type") or json.dumps(error)
        status = error.get("code") if isinstance(error.get("code"), int) else None
    else:
        message = str(error or obj.get("message") or "unknown error")
        status = None
    raise ExternalServiceError(
        f"Provider stream error: {message}", status_code=status, body=obj
    )


def _path_extractor(path: Sequence[str | int]) -> TextExtractor:
    def extract(obj: Any) -> Optional[str]:
        value = extract_path(obj, path)
        return value if isinstance(value, str) else None

    return extract


class StreamFraming(ABC):
    """Recognizes one provider's framing inside the carry-over buffer."""

    @abstractmethod
    def consume(self, buffer: str, *, final: bool) -> tuple[list[str], str, bool]:
        """
        Pull every complete frame out of ``buffer``.

        Args:
            buffer: Decoded text not yet consumed, carried across chunks.
            final: True once the upstream closed; partial frames get one last try.

        Returns:
            ``(texts, remaining_buffer, done)``.
        """
        ...


class _LineFraming(StreamFraming):
    def consume(self, buffer: str, *, final: bool) -> tuple[list[str], str, bool]:
        lines = buffer.split("\n")
        remaining = "" if final else lines.pop()
        texts: list[str] = []
        for line in lines:
            result = self.parse_line(line.rstrip("\r"))
            if result is _END:
                return texts, "", True
            if result:
                texts.append(result)
        return texts, remaining, False

    @abstractmethod
    def parse_line(self, line: str) -> Any:
        ...

    @staticmethod
    def _loads(payload: str) -> Any:
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            _logger.debug("Skipping malformed stream fragment: %.80r", payload)
            return None


class SSEFraming(_LineFraming):
    """Server-sent events; only ``data:`` lines carry payload."""

    def __init__(
        self,
        text_path: Sequence[str | int] | TextExtractor,
        *,
        sentinel: Optional[str] = "[DONE]",
    ) -> None:
        self._extract = text_path if callable(text_path) else _path_extractor(text_path)
        self.sentinel = sentinel

    def parse_line(self, line: str) -> Any:
        obj = _sse_payload(line, self.sentinel)
        if obj is None or obj is _END:
            return obj
        return self._extract(obj)


def _sse_payload(line: str, sentinel: Optional[str]) -> Any:
    """Decoded JSON of one ``data:`` line, `_END` for the sentinel, else None."""
    if not line.startswith("data:"):
        return None
    payload = line[5:].strip()
    if not payload:
        return None
    if sentinel is not None and payload == sentinel:
        return _END
    obj = _LineFraming._loads(payload)
    raise_for_inband_error(obj)
    return obj


async def sse_events(
    chunks: AsyncIterable[bytes], *, sentinel: Optional[str] = "[DONE]"
) -> AsyncGenerator[Any, None]:
    """
    Yield every decoded ``data:`` payload of a server-sent event stream.

    For consumers that need whole events rather than text deltas. Lines may
    be split anywhere across chunks; malformed payloads are skipped and an
    in-band error object raises `ExternalServiceError`.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    async for chunk in chunks:
        buffer += decoder.decode(chunk)
        *lines, buffer = buffer.split("\n")
        for line in lines:
            obj = _sse_payload(line.rstrip("\r"), sentinel)
            if obj is _END:
                return
            if obj is not None:
                yield obj
    buffer += decoder.decode(b"", final=True)
    obj = _sse_payload(buffer.rstrip("\r"), sentinel)
    if obj is not None and obj is not _END:
        yield obj


class NDJSONFraming(_LineFraming):
    """One JSON object per line, no prefix."""

    def __init__(self, text_path: Sequence[str | int] | TextExtractor = ("text",)) -> None:
        self._extract = text_path if callable(text_path) else _path_extractor(text_path)

    def parse_line(self, line: str) -> Any:
        line = line.strip()
        if not line:
            return None
        obj = self._loads(line)
        raise_for_inband_error(obj)
        return self._extract(obj) if obj is not None else None


class JSONArrayFraming(StreamFraming):
    """A top-level JSON array streamed element by element."""

    def __init__(self, extract: TextExtractor) -> None:
        self._extract = extract
        self._decoder = json.JSONDecoder()

    def consume(self, buffer: str, *, final: bool) -> tuple[list[str], str, bool]:
        texts: list[str] = []
        pos = 0
        while True:
            pos = self._skip_separators(buffer, pos)
            if pos >= len(buffer):
                return texts, "", False
            if buffer[pos] == "]":
                return texts, "", True
            try:
                obj, end = self._decoder.raw_decode(buffer, pos)
            except json.JSONDecodeError:
                if final:
                    _logger.debug("Dropping unterminated array element: %.80r", buffer[pos:])
                    return texts, "", False
                return texts, buffer[pos:], False
            raise_for_inband_error(obj)
            text = self._extract(obj)
            if text:
                texts.append(text)
            pos = end

    @staticmethod
    def _skip_separators(buffer: str, pos: int) -> int:
        while pos < len(buffer) and (buffer[pos] in "[," or buffer[pos].isspace()):
            pos += 1
        return pos


class StreamNormalizer:
    """
    Buffer raw byte chunks and emit one text delta per input chunk.

    Empty deltas are never emitted. Once the framing reports the end of the
    stream, later input is ignored.
    """

    def __init__(
        self,
        framing: StreamFraming,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.framing = framing
        self.logger = logger or _logger
        self.name = name or framing.__class__.__name__
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def feed(self, chunk: bytes | str) -> str:
        """Consume one chunk and return the text it completed (may be empty)."""
        if self._done:
            return ""
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        self._buffer += text
        return self._drain(final=False)

    def finish(self) -> str:
        """Parse whatever is left in the carry-over buffer one last time."""
        if self._done:
            return ""
        self._buffer += self._decoder.decode(b"", final=True)
        delta = self._drain(final=True)
        self._done = True
        return delta

    async def normalize(
        self, chunks: AsyncIterable[bytes]
    ) -> AsyncGenerator[str, None]:
        """Lazily map an async byte stream to non-empty text deltas."""
        async for chunk in chunks:
            delta = self.feed(chunk)
            if delta:
                yield delta
            if self._done:
                self.logger.debug(f"[{self.name}] end of stream signalled")
                return
        tail = self.finish()
        if tail:
            yield tail

    def _drain(self, *, final: bool) -> str:
        texts, self._buffer, done = self.framing.consume(self._buffer, final=final)
        if done:
            self._done = True
            self._buffer = ""
        return "".join(texts)
