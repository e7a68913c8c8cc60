"""Multi-round tool use on top of a chat client and an orchestrator."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from llm_relay.client import ChatClient
from llm_relay.errors import ToolUseLimitExceeded
from llm_relay.function_calling.orchestrator import FunctionCallingOrchestrator
from llm_relay.types import MessageLike, ToolChoice, ToolResult

__all__ = ["ToolUseOutcome", "ToolUseSession"]


@dataclass(slots=True)
class ToolUseOutcome:
    reply: str
    results: list[ToolResult] = field(default_factory=list)
    rounds: int = 1


class ToolUseSession:
    """
    Send, execute requested tools, feed results back, repeat.

    Stops at the first response without tool calls. A forcing tool choice
    (required / specific) applies to the first round only so the model can
    answer once it has the results.
    """

    def __init__(
        self,
        client: ChatClient,
        orchestrator: FunctionCallingOrchestrator,
        *,
        max_rounds: int = 5,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.client = client
        self.orchestrator = orchestrator
        self.max_rounds = max_rounds
        self.logger = logger or logging.getLogger(__name__)

    async def run(
        self,
        messages: Iterable[MessageLike],
        choice: ToolChoice = ToolChoice.AUTO,
    ) -> ToolUseOutcome:
        adapter = self.orchestrator.adapter
        request = self.client.prepare(messages, stream=False)
        await self.orchestrator.prepare_request(request, choice)

        collected: list[ToolResult] = []
        for round_no in range(1, self.max_rounds + 1):
            response = await self.client.complete_json(request)
            results = await self.orchestrator.handle_response(response)
            if not results:
                return ToolUseOutcome(adapter.reply_text(response), collected, round_no)

            collected.extend(results)
            body = request.json
            body["messages"].append(adapter.assistant_message(response))
            body["messages"].extend(adapter.tool_result_messages(results))
            if choice.kind in ("required", "specific"):
                choice = ToolChoice.AUTO
                await self.orchestrator.prepare_request(request, choice)
            self.logger.debug("Tool round %d produced %d result(s)", round_no, len(results))

        raise ToolUseLimitExceeded(self.max_rounds)
