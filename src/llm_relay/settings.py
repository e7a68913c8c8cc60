"""Process-level settings read from the environment (and a `.env` file)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from llm_relay.errors import ConfigurationError

__all__ = ["Settings", "load_settings"]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}", exc) from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", exc) from exc


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable knobs shared by the chat client, image adapters and the worker."""

    timeout: float = 60.0
    connect_timeout: float = 10.0
    poll_interval: float = 2.0
    poll_attempts: int = 30
    temp_dir: Path = field(default_factory=lambda: Path("/tmp/stability_images"))
    api_url: str = "http://localhost:8000"
    worker_url: str = "http://worker:8081"


def load_settings() -> Settings:
    """Build `Settings` from environment variables, loading `.env` first."""
    load_dotenv()
    settings = Settings(
        timeout=_env_float("LLM_RELAY_TIMEOUT", 60.0),
        connect_timeout=_env_float("LLM_RELAY_CONNECT_TIMEOUT", 10.0),
        poll_interval=_env_float("LLM_RELAY_POLL_INTERVAL", 2.0),
        poll_attempts=_env_int("LLM_RELAY_POLL_ATTEMPTS", 30),
        temp_dir=Path(os.getenv("TEMP_DIR") or "/tmp/stability_images"),
        api_url=(os.getenv("API_URL") or "http://localhost:8000").rstrip("/"),
        worker_url=(os.getenv("WORKER_URL") or "http://worker:8081").rstrip("/"),
    )
    if settings.poll_attempts < 1:
        raise ConfigurationError("LLM_RELAY_POLL_ATTEMPTS must be at least 1")
    return settings
