"""Run the sandbox worker: ``python -m llm_relay.sandbox``."""

import logging
import os

import uvicorn

from llm_relay.sandbox.server import create_app


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(),
        host=os.getenv("WORKER_HOST", "0.0.0.0"),
        port=int(os.getenv("WORKER_PORT", "8081")),
    )


if __name__ == "__main__":
    main()
