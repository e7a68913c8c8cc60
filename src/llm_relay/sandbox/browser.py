"""Headless-browser page inspection (navigate, screenshot, console logs)."""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Any, Callable, Optional

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.remote.webdriver import WebDriver

from llm_relay.errors import ExecutionError, InvalidArgument
from llm_relay.sandbox.base import SandboxTool
from llm_relay.tools import ParameterType, ToolDefinition, ToolParameter
from llm_relay.types import ToolExecutionOutcome

__all__ = ["SiteInspectorTool", "chrome_driver"]

_logger = logging.getLogger(__name__)

DriverFactory = Callable[[], WebDriver]


def chrome_driver() -> WebDriver:
    """Start a headless Chrome/Chromium that records browser console output."""
    opts = Options()
    binary = (
        shutil.which("google-chrome")
        or shutil.which("chromium-browser")
        or shutil.which("chromium")
    )
    if binary:
        opts.binary_location = binary
    opts.add_argument("--headless=new")
    opts.add_argument("--window-size=1920,1080")
    opts.add_argument("--disable-gpu")
    opts.add_argument("--no-sandbox")
    opts.add_argument("--disable-dev-shm-usage")
    opts.set_capability("goog:loggingPrefs", {"browser": "ALL"})
    return webdriver.Chrome(options=opts)


def _format_console(entries: list[dict[str, Any]]) -> str:
    if not entries:
        return "(no console output)"
    return "\n".join(
        f"[{entry.get('level', 'INFO')}] {entry.get('message', '')}" for entry in entries
    )


class SiteInspectorTool(SandboxTool):
    """
    Unlike the other sandbox tools, driver and navigation failures are raised
    as ExecutionError: the browser itself may be unusable afterwards.
    """

    DEFINITION = ToolDefinition(
        name="site_inspector",
        description="Open a URL in a headless browser, take a screenshot and collect console logs",
        parameters=(
            ToolParameter("url", ParameterType.string(format="uri"), required=True,
                          description="Page to inspect"),
        ),
    )

    def __init__(
        self,
        driver_factory: Optional[DriverFactory] = None,
        screenshot_dir: Optional[Path | str] = None,
    ) -> None:
        self.driver_factory = driver_factory or chrome_driver
        self.screenshot_dir = Path(screenshot_dir or tempfile.gettempdir())

    def validate_args(self, args: dict[str, Any]) -> None:
        url = str(args.get("url", "")).strip()
        if not url.startswith(("http://", "https://", "file://")):
            raise InvalidArgument(f"url must be an http(s) or file URL, got {url!r}")

    def _inspect(self, url: str) -> str:
        self.screenshot_dir.mkdir(parents=True, exist_ok=True)
        screenshot = self.screenshot_dir / f"screenshot-{uuid.uuid4().hex}.png"
        driver = self.driver_factory()
        try:
            driver.get(url)
            driver.save_screenshot(str(screenshot))
            console = driver.get_log("browser")
        finally:
            driver.quit()
        return (
            "Site Inspection Results:\n\n"
            f"URL: {url}\n"
            f"Screenshot saved to: {screenshot}\n\n"
            f"Console Logs:\n{_format_console(console)}"
        )

    async def execute(self, args: dict[str, Any]) -> ToolExecutionOutcome:
        url = args["url"].strip()
        try:
            report = await asyncio.to_thread(self._inspect, url)
        except WebDriverException as exc:
            _logger.warning("Browser failed while inspecting %s: %s", url, exc.msg)
            raise ExecutionError(f"Site inspection failed: {exc.msg or exc}", exc) from exc
        return ToolExecutionOutcome.ok(report)
