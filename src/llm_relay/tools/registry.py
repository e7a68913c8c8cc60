"""
Concurrent catalog of named, schema-validated, asynchronously executable tools.

Build one `ToolRegistry` at process start and pass it by reference to every
call site. Lookups, listing and execute-dispatch share a read lock;
registration takes the write lock briefly. A tool's own `execute` runs
outside the lock so long-running tools never block registration.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Mapping, Optional

import httpx

from llm_relay.errors import ExecutionError, ToolError, ToolNotFound
from llm_relay.tools.definition import ToolDefinition, ToolParameter
from llm_relay.tools.executor import RemoteToolExecutor, ToolExecutor

__all__ = ["ToolRegistry"]


class _ReadWriteLock:
    """Many readers or one writer. Waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._writer and not self._waiting_writers
            )
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._waiting_writers += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and not self._readers)
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


class ToolRegistry:
    """Name -> executor map plus per-tool parameter metadata overrides."""

    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__
        self._tools: dict[str, ToolExecutor] = {}
        self._parameters: dict[str, tuple[ToolParameter, ...]] = {}
        self._lock = _ReadWriteLock()

    # --- writes ------------------------------------------------------------
    async def register(self, executor: ToolExecutor) -> None:
        """Insert ``executor`` under its name; an existing entry is replaced."""
        async with self._lock.write():
            replaced = executor.name in self._tools
            self._tools[executor.name] = executor
        self._log(f"{'Replaced' if replaced else 'Registered'} tool '{executor.name}'")

    async def register_remote(
        self,
        definition: ToolDefinition,
        endpoint: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> RemoteToolExecutor:
        executor = RemoteToolExecutor(definition, endpoint, http_client=http_client)
        await self.register(executor)
        return executor

    async def unregister(self, name: str) -> bool:
        async with self._lock.write():
            removed = self._tools.pop(name, None) is not None
            self._parameters.pop(name, None)
        if removed:
            self._log(f"Unregistered tool '{name}'")
        return removed

    async def update_tool_parameters(
        self, name: str, parameters: Iterable[ToolParameter]
    ) -> None:
        """Attach parameter metadata that overrides the executor's declared list."""
        params = tuple(parameters)
        async with self._lock.write():
            if name not in self._tools:
                raise ToolNotFound(name)
            self._parameters[name] = params
        self._log(f"Updated parameters for '{name}'", logging.DEBUG)

    # --- reads -------------------------------------------------------------
    def _merged(self, executor: ToolExecutor) -> ToolDefinition:
        override = self._parameters.get(executor.name)
        definition = executor.definition
        return definition.with_parameters(override) if override is not None else definition

    async def _resolve(self, name: str) -> tuple[ToolExecutor, ToolDefinition]:
        async with self._lock.read():
            executor = self._tools.get(name)
            if executor is None:
                raise ToolNotFound(name)
            return executor, self._merged(executor)

    async def get_tool(self, name: str) -> Optional[ToolDefinition]:
        try:
            _, definition = await self._resolve(name)
        except ToolNotFound:
            return None
        return definition

    async def list_tools(self) -> list[ToolDefinition]:
        async with self._lock.read():
            return [self._merged(executor) for executor in self._tools.values()]

    async def contains(self, name: str) -> bool:
        async with self._lock.read():
            return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def is_empty(self) -> bool:
        return not self._tools

    # --- dispatch ----------------------------------------------------------
    async def execute(self, name: str, args: Mapping[str, Any] | None = None) -> Any:
        """
        Validate then run one tool.

        Raises:
            ToolNotFound: No tool is registered under ``name``.
            MissingParameter: A required parameter is absent. Nothing ran.
            InvalidArgument: A supplied value is out of contract. Nothing ran.
            ToolError: Raised by the tool itself while executing.
            ExecutionError: Any other exception escaping the tool.
        """
        executor, definition = await self._resolve(name)
        call_args = dict(args or {})
        definition.validate_args(call_args)
        executor.validate_args(call_args)

        self._log(f"Executing tool '{name}'", logging.DEBUG)
        try:
            return await executor.execute(call_args)
        except ToolError:
            raise
        except Exception as exc:
            self._log(f"Tool '{name}' raised {exc.__class__.__name__}: {exc}", logging.WARNING)
            raise ExecutionError(str(exc) or exc.__class__.__name__, exc) from exc

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")
