from typing import AsyncIterator, Iterable

import pytest

from llm_relay.settings import Settings


async def byte_stream(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


@pytest.fixture
def settings(tmp_path):
    """Settings that never sleep and write images under tmp_path."""
    return Settings(
        poll_interval=0.0,
        poll_attempts=5,
        temp_dir=tmp_path / "images",
        api_url="http://api.test",
        worker_url="http://worker.test",
    )
