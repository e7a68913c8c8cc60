"""Stream normalization across SSE, NDJSON and JSON-array framings."""

import pytest

from llm_relay.adapters import AnthropicChatAdapter, CohereChatAdapter, GeminiChatAdapter
from llm_relay.errors import ExternalServiceError
from llm_relay.streaming import SSEFraming, StreamNormalizer, sse_events

from conftest import byte_stream

HI_FRAME = b'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n'
THERE_FRAME = b'data: {"choices":[{"delta":{"content":" there"}}]}\n\n'
DONE_FRAME = b"data: [DONE]\n\n"
OPENAI_BODY = HI_FRAME + THERE_FRAME + DONE_FRAME

GEMINI_BODY = (
    b'[{"candidates":[{"content":{"parts":[{"text":"Hello"}],"role":"model"}}]}\n'
    b',\r\n{"candidates":[{"content":{"parts":[{"text":" world"}],"role":"model"}}]}\n]'
)


def openai_normalizer() -> StreamNormalizer:
    return StreamNormalizer(SSEFraming(("choices", 0, "delta", "content")))


def feed_all(normalizer: StreamNormalizer, chunks) -> list[str]:
    deltas = [normalizer.feed(chunk) for chunk in chunks]
    deltas.append(normalizer.finish())
    return [d for d in deltas if d]


async def collect(normalizer: StreamNormalizer, chunks) -> list[str]:
    return [delta async for delta in normalizer.normalize(byte_stream(chunks))]


class TestSSEFraming:
    """OpenAI-style ``data:`` frames with a ``[DONE]`` sentinel."""

    @pytest.mark.asyncio
    async def test_frames_normalize_to_deltas_then_end(self):
        """Each frame chunk yields its own delta; [DONE] ends the stream."""
        normalizer = openai_normalizer()
        deltas = await collect(normalizer, [HI_FRAME, THERE_FRAME, DONE_FRAME])

        assert deltas == ["Hi", " there"]
        assert normalizer.done

    def test_every_two_way_split_gives_same_text(self):
        """Any chunk boundary produces the same concatenated text."""
        for i in range(1, len(OPENAI_BODY)):
            chunks = [OPENAI_BODY[:i], OPENAI_BODY[i:]]
            assert "".join(feed_all(openai_normalizer(), chunks)) == "Hi there", i

    def test_three_way_and_bytewise_splits_give_same_text(self):
        """Finer fragmentation, down to single bytes, is also invariant."""
        for i in range(1, len(OPENAI_BODY)):
            for j in range(i, len(OPENAI_BODY), 5):
                chunks = [OPENAI_BODY[:i], OPENAI_BODY[i:j], OPENAI_BODY[j:]]
                assert "".join(feed_all(openai_normalizer(), chunks)) == "Hi there"

        bytewise = [OPENAI_BODY[k:k + 1] for k in range(len(OPENAI_BODY))]
        assert "".join(feed_all(openai_normalizer(), bytewise)) == "Hi there"

    def test_multibyte_characters_survive_any_split(self):
        """UTF-8 sequences cut across chunks are reassembled."""
        body = 'data: {"choices":[{"delta":{"content":"héllo wörld"}}]}\n\n'.encode()
        for i in range(1, len(body)):
            assert "".join(feed_all(openai_normalizer(), [body[:i], body[i:]])) == "héllo wörld"

    @pytest.mark.asyncio
    async def test_empty_deltas_are_suppressed(self):
        """Role-only and comment frames produce no delta."""
        role_only = b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n'
        comment = b": keep-alive\n\n"
        deltas = await collect(openai_normalizer(), [role_only, comment, HI_FRAME, DONE_FRAME])

        assert deltas == ["Hi"]

    @pytest.mark.asyncio
    async def test_malformed_fragment_is_skipped(self):
        """Broken JSON is treated as no content for that frame."""
        broken = b"data: {not json}\n\n"
        deltas = await collect(openai_normalizer(), [broken, HI_FRAME, DONE_FRAME])

        assert deltas == ["Hi"]

    @pytest.mark.asyncio
    async def test_inband_error_terminates_with_provider_message(self):
        """An error object ends the stream after the deltas already emitted."""
        error = b'data: {"error":{"message":"quota exceeded","type":"insufficient_quota"}}\n\n'
        received = []
        with pytest.raises(ExternalServiceError) as exc_info:
            async for delta in openai_normalizer().normalize(byte_stream([HI_FRAME, error, THERE_FRAME])):
                received.append(delta)

        assert received == ["Hi"]
        assert "quota exceeded" in str(exc_info.value)
        assert exc_info.value.body["error"]["type"] == "insufficient_quota"

    @pytest.mark.asyncio
    async def test_final_fragment_without_newline_is_flushed(self):
        """The carry-over buffer is parsed once more at end of input."""
        tail = b'data: {"choices":[{"delta":{"content":"tail"}}]}'
        deltas = await collect(openai_normalizer(), [HI_FRAME, tail])

        assert deltas == ["Hi", "tail"]

    def test_input_after_sentinel_is_ignored(self):
        normalizer = openai_normalizer()
        normalizer.feed(HI_FRAME + DONE_FRAME)

        assert normalizer.feed(THERE_FRAME) == ""
        assert normalizer.finish() == ""

    def test_one_chunk_with_many_frames_is_one_delta(self):
        """Text from every frame in a chunk is concatenated."""
        assert openai_normalizer().feed(HI_FRAME + THERE_FRAME) == "Hi there"


class TestAnthropicStream:
    """Anthropic events carry text at ``delta.text`` and have no sentinel."""

    BODY = (
        b'event: message_start\ndata: {"type":"message_start","message":{"id":"msg_1"}}\n\n'
        b'event: content_block_start\ndata: {"type":"content_block_start","index":0,'
        b'"content_block":{"type":"text","text":""}}\n\n'
        b'event: ping\ndata: {"type": "ping"}\n\n'
        b'event: content_block_delta\ndata: {"type":"content_block_delta","index":0,'
        b'"delta":{"type":"text_delta","text":"Hello"}}\n\n'
        b'event: content_block_delta\ndata: {"type":"content_block_delta","index":0,'
        b'"delta":{"type":"text_delta","text":", world"}}\n\n'
        b'event: message_stop\ndata: {"type":"message_stop"}\n\n'
    )

    def normalizer(self) -> StreamNormalizer:
        return StreamNormalizer(AnthropicChatAdapter().framing())

    def test_text_deltas_are_extracted(self):
        assert "".join(feed_all(self.normalizer(), [self.BODY])) == "Hello, world"

    def test_split_invariance(self):
        for i in range(1, len(self.BODY), 3):
            chunks = [self.BODY[:i], self.BODY[i:]]
            assert "".join(feed_all(self.normalizer(), chunks)) == "Hello, world"

    def test_error_event_raises(self):
        error = (
            b'event: error\ndata: {"type":"error","error":'
            b'{"type":"overloaded_error","message":"Overloaded"}}\n\n'
        )
        with pytest.raises(ExternalServiceError, match="Overloaded"):
            self.normalizer().feed(error)


class TestSSEEvents:
    """Whole events for consumers that look past the text deltas."""

    @pytest.mark.asyncio
    async def test_events_survive_bytewise_splits(self):
        body = b'event: ping\ndata: {"type": "a"}\n\n: comment\ndata: not json\n\ndata: {"type": "b"}'
        events = [event async for event in sse_events(byte_stream(body[i:i + 1] for i in range(len(body))))]

        assert events == [{"type": "a"}, {"type": "b"}]

    @pytest.mark.asyncio
    async def test_sentinel_ends_iteration(self):
        events = [event async for event in sse_events(byte_stream([HI_FRAME, DONE_FRAME, THERE_FRAME]))]

        assert events == [{"choices": [{"delta": {"content": "Hi"}}]}]

    @pytest.mark.asyncio
    async def test_inband_error_raises(self):
        frames = [b'data: {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}\n\n']

        with pytest.raises(ExternalServiceError, match="Overloaded"):
            [event async for event in sse_events(byte_stream(frames))]


class TestNDJSONStream:
    """Cohere sends one bare JSON event per line."""

    BODY = (
        b'{"is_finished":false,"event_type":"stream-start","generation_id":"g1"}\n'
        b'{"is_finished":false,"event_type":"text-generation","text":"Hel"}\n'
        b'{"is_finished":false,"event_type":"text-generation","text":"lo"}\n'
        b'{"is_finished":true,"event_type":"stream-end","response":{"text":"Hello"}}\n'
    )

    def test_text_events_only(self):
        """stream-start and stream-end carry no delta."""
        normalizer = StreamNormalizer(CohereChatAdapter().framing())
        assert feed_all(normalizer, [self.BODY]) == ["Hello"]

    def test_split_invariance(self):
        for i in range(1, len(self.BODY)):
            normalizer = StreamNormalizer(CohereChatAdapter().framing())
            assert "".join(feed_all(normalizer, [self.BODY[:i], self.BODY[i:]])) == "Hello"


class TestJSONArrayStream:
    """Gemini answers with one JSON array of candidate objects."""

    def normalizer(self) -> StreamNormalizer:
        return StreamNormalizer(GeminiChatAdapter().framing())

    def test_elements_emit_as_they_complete(self):
        """The first element is emitted before the array is closed."""
        normalizer = self.normalizer()
        first_end = GEMINI_BODY.index(b"\n,")

        assert normalizer.feed(GEMINI_BODY[:first_end]) == "Hello"
        assert normalizer.feed(GEMINI_BODY[first_end:]) == " world"
        assert normalizer.done

    def test_split_invariance(self):
        for i in range(1, len(GEMINI_BODY)):
            chunks = [GEMINI_BODY[:i], GEMINI_BODY[i:]]
            assert "".join(feed_all(self.normalizer(), chunks)) == "Hello world", i

    def test_unterminated_array_is_flushed_at_end(self):
        """A stream cut before ``]`` still yields every complete element."""
        body = GEMINI_BODY[: GEMINI_BODY.rindex(b"]")]
        assert "".join(feed_all(self.normalizer(), [body])) == "Hello world"

    def test_error_element_raises_with_status(self):
        body = b'[{"error":{"code":429,"message":"Resource exhausted","status":"RESOURCE_EXHAUSTED"}}]'
        with pytest.raises(ExternalServiceError) as exc_info:
            feed_all(self.normalizer(), [body])

        assert exc_info.value.status_code == 429
        assert "Resource exhausted" in str(exc_info.value)
