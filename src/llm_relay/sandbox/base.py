from __future__ import annotations

from abc import abstractmethod
from typing import Any, ClassVar

from llm_relay.tools import ToolDefinition, ToolExecutor
from llm_relay.types import ToolExecutionOutcome

__all__ = ["SandboxTool"]


class SandboxTool(ToolExecutor):
    """
    A worker-side tool touching the local OS.

    Ordinary failures come back as ``ToolExecutionOutcome(success=False)``;
    they are never raised. Side effects of completed steps are not rolled back.
    """

    DEFINITION: ClassVar[ToolDefinition]

    @property
    def definition(self) -> ToolDefinition:
        return self.DEFINITION

    @abstractmethod
    async def execute(self, args: dict[str, Any]) -> ToolExecutionOutcome:
        ...
