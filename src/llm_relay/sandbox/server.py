"""HTTP surface of the sandbox worker."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from llm_relay.errors import ExecutionError, ToolNotFound
from llm_relay.sandbox.computer import Computer

__all__ = ["create_app"]

logger = logging.getLogger(__name__)


class BashRequest(BaseModel):
    command: str
    timeout: Optional[float] = None
    cwd: Optional[str] = None


class TextEditorRequest(BaseModel):
    command: str
    path: str
    text: Optional[str] = None
    file_text: Optional[str] = None
    pattern: Optional[str] = None
    replacement: Optional[str] = None


class ComputerRequest(BaseModel):
    action: str
    x: Optional[float] = None
    y: Optional[float] = None
    text: Optional[str] = None
    key: Optional[str] = None


class ToolInvocation(BaseModel):
    arguments: dict[str, Any] = {}


def _failure(envelope: dict[str, Any], error: str, status: int) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={**envelope, "output": {"success": False, "output": "", "error": error}},
    )


async def _run(
    computer: Computer, tool: str, params: dict[str, Any], envelope: dict[str, Any]
) -> Any:
    try:
        outcome = await computer.execute_tool(tool, params)
    except ToolNotFound as exc:
        return _failure(envelope, str(exc), 404)
    except ExecutionError as exc:
        logger.warning("Tool %s failed hard: %s", tool, exc)
        return _failure(envelope, str(exc), 500)
    return {**envelope, "output": outcome.as_dict()}


def _computer(request: Request) -> Computer:
    return request.app.state.computer


def create_app(computer: Optional[Computer] = None) -> FastAPI:
    app = FastAPI(title="llm-relay sandbox worker")
    app.state.computer = Computer() if computer is None else computer
    router = APIRouter(prefix="/computer-use")

    @router.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @router.post("/bash")
    async def bash(body: BashRequest, request: Request):
        params = body.model_dump(exclude_none=True)
        envelope = {"name": "bash", "command": body.command}
        return await _run(_computer(request), "execute_command", params, envelope)

    @router.post("/text-editor")
    async def text_editor(body: TextEditorRequest, request: Request):
        params = body.model_dump(exclude_none=True)
        envelope = {"name": "str_replace_editor", "command": body.command, "path": body.path}
        return await _run(_computer(request), "file_operations", params, envelope)

    @router.post("/computer")
    async def computer_action(body: ComputerRequest, request: Request):
        params = body.model_dump(exclude_none=True)
        envelope = {"name": "computer", "action": body.action}
        return await _run(_computer(request), "computer", params, envelope)

    @router.get("/tools")
    async def list_tools(request: Request) -> list[dict[str, Any]]:
        return [
            {
                "name": d.name,
                "description": d.description,
                "parameters": d.to_json_schema(),
            }
            for d in await _computer(request).list_tools()
        ]

    @router.post("/tools/{name}")
    async def invoke_tool(name: str, body: ToolInvocation, request: Request):
        return await _run(_computer(request), name, body.arguments, {"name": name})

    app.include_router(router)
    return app
