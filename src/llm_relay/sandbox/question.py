from __future__ import annotations

from typing import Any

from llm_relay.sandbox.base import SandboxTool
from llm_relay.tools import ParameterType, ToolDefinition, ToolParameter
from llm_relay.types import ToolExecutionOutcome


class FollowupQuestionTool(SandboxTool):
    """Echo a clarifying question so the agent can wait for a human answer."""

    DEFINITION = ToolDefinition(
        name="followup_question",
        description="Ask the user a clarifying question",
        parameters=(
            ToolParameter("question", ParameterType.string(), required=True,
                          description="The question to ask"),
        ),
    )

    async def execute(self, args: dict[str, Any]) -> ToolExecutionOutcome:
        return ToolExecutionOutcome.ok(f"Question asked: {args['question']}")
