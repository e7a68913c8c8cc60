"""File creation, overwrite, read and in-place replacement."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Final, Mapping, Optional

from llm_relay.errors import InvalidArgument, MissingParameter
from llm_relay.sandbox.base import SandboxTool
from llm_relay.tools import ParameterType, ToolDefinition, ToolParameter
from llm_relay.types import ToolExecutionOutcome

__all__ = ["FileOperationsTool"]

WRITE_COMMANDS: Final = frozenset({"create", "write"})
READ_COMMANDS: Final = frozenset({"read", "view"})
REPLACE_COMMANDS: Final = frozenset({"str_replace", "replace"})
COMMANDS: Final = WRITE_COMMANDS | READ_COMMANDS | REPLACE_COMMANDS


def _first(args: Mapping[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        if args.get(key) is not None:
            return args[key]
    return None


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _read(path: Path) -> str:
    if path.is_dir():
        return "\n".join(sorted(child.name for child in path.iterdir()))
    return path.read_text(encoding="utf-8")


def _replace(path: Path, pattern: str, replacement: str) -> int:
    content = path.read_text(encoding="utf-8")
    count = content.count(pattern)
    if count:
        path.write_text(content.replace(pattern, replacement), encoding="utf-8")
    return count


class FileOperationsTool(SandboxTool):
    """
    ``create``/``write`` overwrite the whole file, creating parent directories.
    ``read``/``view`` return the content (a listing for directories).
    ``str_replace`` replaces every occurrence of ``pattern``.

    ``operation`` is accepted as an alias of ``command``; ``file_text`` and
    ``content`` of ``text``; ``old_str``/``new_str`` of ``pattern``/``replacement``.
    """

    DEFINITION = ToolDefinition(
        name="file_operations",
        description="Create, overwrite, read or edit files",
        parameters=(
            ToolParameter("command", ParameterType.string(enum=sorted(COMMANDS)),
                          description="Operation to perform"),
            ToolParameter("path", ParameterType.string(), required=True,
                          description="Target file path"),
            ToolParameter("text", ParameterType.string(),
                          description="Full file content for create/write"),
            ToolParameter("pattern", ParameterType.string(),
                          description="Text to replace for str_replace"),
            ToolParameter("replacement", ParameterType.string(),
                          description="Replacement text for str_replace"),
        ),
    )

    def __init__(self, root: Optional[Path | str] = None) -> None:
        self.root = Path(root) if root is not None else None

    def validate_args(self, args: Mapping[str, Any]) -> None:
        command = _first(args, "command", "operation")
        if command is None:
            raise MissingParameter("command")
        if command in WRITE_COMMANDS and _first(args, "text", "file_text", "content") is None:
            raise MissingParameter("text")
        if command in REPLACE_COMMANDS and _first(args, "pattern", "old_str") is None:
            raise MissingParameter("pattern")
        if command in REPLACE_COMMANDS and _first(args, "pattern", "old_str") == "":
            raise InvalidArgument("pattern must not be empty")

    def resolve(self, raw: str) -> Path:
        path = Path(raw)
        if self.root is not None and not path.is_absolute():
            path = self.root / path
        return path

    async def execute(self, args: dict[str, Any]) -> ToolExecutionOutcome:
        command = _first(args, "command", "operation")
        path = self.resolve(args["path"])

        if command not in COMMANDS:
            return ToolExecutionOutcome.fail(f"Unsupported command: {command}")

        try:
            if command in WRITE_COMMANDS:
                text = str(_first(args, "text", "file_text", "content"))
                await asyncio.to_thread(_write, path, text)
                return ToolExecutionOutcome.ok(f"File written successfully: {path}")

            if not path.exists():
                return ToolExecutionOutcome.fail(f"File not found: {path}")

            if command in READ_COMMANDS:
                return ToolExecutionOutcome.ok(await asyncio.to_thread(_read, path))

            pattern = str(_first(args, "pattern", "old_str"))
            replacement = str(_first(args, "replacement", "new_str") or "")
            count = await asyncio.to_thread(_replace, path, pattern, replacement)
            if not count:
                return ToolExecutionOutcome.fail(f"Pattern not found in {path}")
            return ToolExecutionOutcome.ok(f"Replaced {count} occurrence(s) in {path}")
        except (OSError, UnicodeDecodeError) as exc:
            return ToolExecutionOutcome.fail(f"File operation '{command}' failed: {exc}")
