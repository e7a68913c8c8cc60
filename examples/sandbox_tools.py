"""
Drive the sandbox worker from the backend.

Start the worker first:  python -m llm_relay.sandbox
"""
import asyncio
import logging

from llm_relay.sandbox import WorkerClient, register_worker_tools
from llm_relay.settings import load_settings
from llm_relay.tools import ToolRegistry

logging.basicConfig(level=logging.INFO)


async def main():
    settings = load_settings()
    worker = WorkerClient(settings=settings)
    registry = ToolRegistry()

    await register_worker_tools(registry, worker)
    print("Worker:", await worker.health())

    print(await registry.execute("execute_command", {"command": "uname -a"}))
    print(await registry.execute(
        "file_operations",
        {"command": "create", "path": "/tmp/hello.txt", "text": "hello from the worker\n"},
    ))
    print(await registry.execute("file_operations", {"command": "read", "path": "/tmp/hello.txt"}))

    await worker.aclose()


if __name__ == "__main__":
    asyncio.run(main())
