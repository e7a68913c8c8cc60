"""Backend-side access to the sandbox worker over HTTP."""

from __future__ import annotations

import logging
from typing import Any, Final, Iterable, Optional

import httpx

from llm_relay.adapters.base import load_json
from llm_relay.errors import ToolExternalServiceError
from llm_relay.sandbox.computer import default_tools
from llm_relay.settings import Settings, load_settings
from llm_relay.tools import RemoteToolExecutor, ToolDefinition, ToolRegistry

__all__ = ["WorkerClient", "WorkerTool", "register_worker_tools"]

logger = logging.getLogger(__name__)

# tool name -> dedicated worker endpoint; everything else goes to /tools/{name}
_ENDPOINTS: Final[dict[str, str]] = {
    "bash": "bash",
    "execute_command": "bash",
    "str_replace_editor": "text-editor",
    "file_operations": "text-editor",
    "computer": "computer",
}

# computer-use action names -> worker actions
_NATIVE_ACTIONS: Final[dict[str, str]] = {
    "left_click": "click",
    "mouse_move": "move",
}


class WorkerClient:
    """Maps tool names to worker endpoints and request bodies."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or load_settings()
        self.base_url = (base_url or settings.worker_url).rstrip("/")
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.timeout, connect=settings.connect_timeout)
        )

    def endpoint_for(self, tool_name: str) -> str:
        path = _ENDPOINTS.get(tool_name, f"tools/{tool_name}")
        return f"{self.base_url}/computer-use/{path}"

    def payload_for(self, tool_name: str, args: dict[str, Any]) -> dict[str, Any]:
        endpoint = _ENDPOINTS.get(tool_name)
        if endpoint == "text-editor":
            payload = dict(args)
            if "file_text" in payload and "text" not in payload:
                payload["text"] = payload.pop("file_text")
            if "operation" in payload and "command" not in payload:
                payload["command"] = payload.pop("operation")
            if "old_str" in payload and "pattern" not in payload:
                payload["pattern"] = payload.pop("old_str")
            if "new_str" in payload and "replacement" not in payload:
                payload["replacement"] = payload.pop("new_str")
            return payload
        if endpoint == "computer":
            payload = dict(args)
            coordinate = payload.pop("coordinate", None)
            if isinstance(coordinate, (list, tuple)) and len(coordinate) == 2:
                payload.setdefault("x", coordinate[0])
                payload.setdefault("y", coordinate[1])
            if "action" in payload:
                payload["action"] = _NATIVE_ACTIONS.get(payload["action"], payload["action"])
            return payload
        if endpoint == "bash":
            return dict(args)
        return {"arguments": args}

    async def health(self) -> dict[str, Any]:
        try:
            response = await self.http.get(f"{self.base_url}/computer-use/health")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ToolExternalServiceError(f"worker health check failed: {exc}", original_exc=exc) from exc
        return response.json()

    async def dispatch(self, tool_name: str, args: dict[str, Any]) -> Any:
        """
        POST one tool invocation to its worker endpoint; return the decoded answer.

        Raises:
            ToolExternalServiceError: The worker is unreachable or answered non-2xx.
        """
        url = self.endpoint_for(tool_name)
        logger.info("Sending %s to worker at %s", tool_name, url)
        try:
            response = await self.http.post(url, json=self.payload_for(tool_name, args))
        except httpx.HTTPError as exc:
            raise ToolExternalServiceError(f"{tool_name} at {url}: {exc}", original_exc=exc) from exc
        if not response.is_success:
            raise ToolExternalServiceError(
                f"{tool_name} answered {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        data = load_json(response.content)
        return data if data is not None else response.text

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()


class WorkerTool(RemoteToolExecutor):
    """A sandbox tool executed by the worker; returns the worker's ``output`` object."""

    def __init__(self, definition: ToolDefinition, client: WorkerClient) -> None:
        super().__init__(
            definition, client.endpoint_for(definition.name), http_client=client.http
        )
        self.worker = client

    def build_payload(self, args: dict[str, Any]) -> dict[str, Any]:
        return self.worker.payload_for(self.name, args)

    def parse_result(self, data: Any) -> Any:
        if isinstance(data, dict) and "output" in data:
            return data["output"]
        return data


async def register_worker_tools(
    registry: ToolRegistry,
    client: WorkerClient,
    definitions: Optional[Iterable[ToolDefinition]] = None,
) -> list[WorkerTool]:
    """Expose worker tools through ``registry`` (default: the standard sandbox set)."""
    if definitions is None:
        definitions = [tool.definition for tool in default_tools()]
    installed: list[WorkerTool] = []
    for definition in definitions:
        tool = WorkerTool(definition, client)
        await registry.register(tool)
        installed.append(tool)
    logger.info("Registered %d worker tools from %s", len(installed), client.base_url)
    return installed
