from __future__ import annotations

import argparse
import asyncio
import logging

from llm_relay import (
    FunctionCallingOrchestrator,
    ProviderDescriptor,
    ToolChoice,
    ToolUseSession,
    create_client,
)
from llm_relay.tools import default_registry

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


async def weather_roundtrip(provider: str, model: str) -> None:
    """
    Run a full tool-use conversation with the given provider + model.

    1) Advertise the demonstration tools and send the user prompt
    2) Let the model emit tool calls
    3) Execute them through the registry and feed the results back
    4) Stop at the first answer without tool calls
    """
    registry = await default_registry()
    orchestrator = FunctionCallingOrchestrator.for_provider(provider, registry)

    async with create_client(ProviderDescriptor(provider, configuration={"model": model})) as llm:
        session = ToolUseSession(llm, orchestrator)
        outcome = await session.run(
            [{"role": "user", "content": "What's the weather in San Francisco?"}],
            ToolChoice.REQUIRED,
        )

    for result in outcome.results:
        logger.info("Tool result %s: %s", result.tool_call_id, result.result)
    logger.info("%s says after %d round(s): %s", provider, outcome.rounds, outcome.reply)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--provider", choices=["gpt", "claude"], default="claude")
    parser.add_argument(
        "--model",
        default="claude-3-5-haiku-20241022",  # "gpt-4o-mini", "claude-3-5-haiku-20241022"
    )
    args = parser.parse_args()
    asyncio.run(weather_roundtrip(args.provider, args.model))
