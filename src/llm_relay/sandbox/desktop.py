"""Mouse and keyboard control of the worker's X display through ``xdotool``."""

from __future__ import annotations

from typing import Any, Final, Mapping

from llm_relay.errors import MissingParameter
from llm_relay.sandbox.base import SandboxTool
from llm_relay.sandbox.command import run_process
from llm_relay.tools import ParameterType, ToolDefinition, ToolParameter
from llm_relay.types import ToolExecutionOutcome

__all__ = ["ComputerActionTool"]

ACTIONS: Final = ("click", "double_click", "move", "type", "key")
_POINTER_ACTIONS: Final = frozenset({"click", "double_click", "move"})


class ComputerActionTool(SandboxTool):
    DEFINITION = ToolDefinition(
        name="computer",
        description="Move or click the mouse, type text or press keys on the desktop",
        parameters=(
            ToolParameter("action", ParameterType.string(enum=ACTIONS), required=True),
            ToolParameter("x", ParameterType.number(minimum=0), description="Screen x"),
            ToolParameter("y", ParameterType.number(minimum=0), description="Screen y"),
            ToolParameter("text", ParameterType.string(), description="Text to type"),
            ToolParameter("key", ParameterType.string(),
                          description="Key or chord to press, e.g. 'ctrl+s'"),
        ),
    )

    def __init__(self, binary: str = "xdotool") -> None:
        self.binary = binary

    def validate_args(self, args: Mapping[str, Any]) -> None:
        action = args.get("action")
        if action in _POINTER_ACTIONS:
            for coord in ("x", "y"):
                if args.get(coord) is None:
                    raise MissingParameter(coord)
        elif action == "type" and args.get("text") is None:
            raise MissingParameter("text")
        elif action == "key" and not args.get("key"):
            raise MissingParameter("key")

    def command_for(self, args: Mapping[str, Any]) -> list[str]:
        action = args["action"]
        if action in _POINTER_ACTIONS:
            argv = ["mousemove", str(int(args["x"])), str(int(args["y"]))]
            if action == "click":
                argv += ["click", "1"]
            elif action == "double_click":
                argv += ["click", "--repeat", "2", "1"]
            return [self.binary, *argv]
        if action == "type":
            return [self.binary, "type", "--", str(args["text"])]
        return [self.binary, "key", "--", str(args["key"])]

    async def execute(self, args: dict[str, Any]) -> ToolExecutionOutcome:
        argv = self.command_for(args)
        try:
            status, stdout, stderr = await run_process(argv)
        except OSError as exc:
            return ToolExecutionOutcome.fail(f"{self.binary} is not available: {exc}")
        if status != 0:
            return ToolExecutionOutcome.fail(
                f"{args['action']} failed with status {status}: {stderr.strip()}", stdout
            )
        return ToolExecutionOutcome.ok(f"Performed {args['action']}")
