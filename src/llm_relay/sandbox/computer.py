"""
The Computer: a tool registry pre-loaded with OS-facing sandbox tools.

It lives in the isolated worker process. Caller-input problems (missing or
invalid parameters) come back as failed outcomes; only an unknown tool name
and hard browser failures are raised.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from llm_relay.errors import InvalidArgument, MissingParameter
from llm_relay.sandbox.base import SandboxTool
from llm_relay.sandbox.browser import SiteInspectorTool
from llm_relay.sandbox.command import ExecuteCommandTool
from llm_relay.sandbox.desktop import ComputerActionTool
from llm_relay.sandbox.files import FileOperationsTool
from llm_relay.sandbox.question import FollowupQuestionTool
from llm_relay.tools import ToolExecutor, ToolRegistry
from llm_relay.types import ToolExecutionOutcome

__all__ = ["Computer", "default_tools"]


def default_tools(workdir: Optional[Path | str] = None) -> list[SandboxTool]:
    return [
        ExecuteCommandTool(),
        FileOperationsTool(root=workdir),
        SiteInspectorTool(),
        FollowupQuestionTool(),
        ComputerActionTool(),
    ]


class Computer(ToolRegistry):
    def __init__(
        self,
        tools: Optional[Iterable[ToolExecutor]] = None,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(logger=logger, name=name or "Computer")
        # Not shared with anyone yet, so no lock is needed here.
        for tool in default_tools() if tools is None else tools:
            self._tools[tool.name] = tool

    async def execute_tool(
        self, name: str, params: Mapping[str, Any] | None = None
    ) -> ToolExecutionOutcome:
        """
        Run a sandbox tool and always hand back an outcome.

        Raises:
            ToolNotFound: No tool is registered under ``name``.
            ExecutionError: The page inspector's browser failed.
        """
        try:
            result = await self.execute(name, params)
        except (MissingParameter, InvalidArgument) as exc:
            self._log(f"Rejected call to '{name}': {exc}", logging.DEBUG)
            return ToolExecutionOutcome.fail(str(exc))
        if isinstance(result, ToolExecutionOutcome):
            return result
        return ToolExecutionOutcome.ok(result if isinstance(result, str) else str(result))

    async def list_available_tools(self) -> list[str]:
        return [tool.name for tool in await self.list_tools()]

    async def has_tool(self, name: str) -> bool:
        return await self.contains(name)

    async def get_tool_description(self, name: str) -> Optional[str]:
        definition = await self.get_tool(name)
        return definition.description if definition else None

    async def get_tool_parameters(self, name: str) -> Optional[list[tuple[str, bool]]]:
        """``(name, required)`` pairs in declaration order."""
        definition = await self.get_tool(name)
        if definition is None:
            return None
        return [(p.name, p.required) for p in definition.parameters]

    @staticmethod
    def format_result(name: str, outcome: ToolExecutionOutcome) -> dict[str, Any]:
        return {
            "tool": name,
            "success": outcome.success,
            "output": outcome.output,
            "error": outcome.error,
        }
