"""Shell command execution."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Sequence

from llm_relay.sandbox.base import SandboxTool
from llm_relay.tools import ParameterType, ToolDefinition, ToolParameter
from llm_relay.types import ToolExecutionOutcome

__all__ = ["ExecuteCommandTool", "run_process"]

_logger = logging.getLogger(__name__)


async def run_process(
    argv: Sequence[str],
    *,
    timeout: Optional[float] = None,
    cwd: Optional[str] = None,
) -> tuple[int, str, str]:
    """
    Run ``argv`` without a shell and capture its output.

    Raises:
        OSError: The executable could not be started.
        TimeoutError: ``timeout`` elapsed; the process has been killed.
    """
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=cwd,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise TimeoutError(f"timed out after {timeout:g}s") from None
    return (
        proc.returncode if proc.returncode is not None else -1,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace"),
    )


class ExecuteCommandTool(SandboxTool):
    """``sh -c <command>``; a non-zero exit is a failed outcome, not an exception."""

    DEFINITION = ToolDefinition(
        name="execute_command",
        description="Execute a shell command and capture stdout, stderr and exit status",
        parameters=(
            ToolParameter("command", ParameterType.string(), required=True,
                          description="The command line to run with sh -c"),
            ToolParameter("timeout", ParameterType.number(minimum=0),
                          description="Seconds to wait before killing the command"),
            ToolParameter("cwd", ParameterType.string(),
                          description="Working directory"),
        ),
    )

    def __init__(self, shell: str = "sh") -> None:
        self.shell = shell

    async def execute(self, args: dict[str, Any]) -> ToolExecutionOutcome:
        command = args["command"]
        try:
            status, stdout, stderr = await run_process(
                [self.shell, "-c", command],
                timeout=args.get("timeout"),
                cwd=args.get("cwd"),
            )
        except TimeoutError as exc:
            return ToolExecutionOutcome.fail(f"Command {exc}")
        except OSError as exc:
            _logger.warning("Could not start %r: %s", command, exc)
            return ToolExecutionOutcome.fail(f"Failed to execute command: {exc}")

        output = f"Command output:\nstdout: {stdout}\nstderr: {stderr}"
        if status != 0:
            return ToolExecutionOutcome.fail(f"Command failed with status: {status}", output)
        return ToolExecutionOutcome.ok(output)
