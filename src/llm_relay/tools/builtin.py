"""Demonstration tools: weather lookup, web search and a calculator."""

from __future__ import annotations

import re
from typing import Any, Final, Mapping, Optional

from llm_relay.errors import InvalidArgument
from llm_relay.tools.definition import ParameterType, ToolDefinition, ToolParameter
from llm_relay.tools.executor import ToolExecutor
from llm_relay.tools.registry import ToolRegistry

__all__ = ["WeatherTool", "SearchTool", "CalculatorTool", "evaluate", "default_registry"]


class WeatherTool(ToolExecutor):
    """Static weather report; stands in for a real weather API."""

    _DEFINITION: Final = ToolDefinition(
        name="get_weather",
        description="Get the current weather and a short forecast for a location",
        parameters=(
            ToolParameter(
                "location",
                ParameterType.string(),
                required=True,
                description="City and country, e.g. 'Paris, France'",
            ),
            ToolParameter(
                "units",
                ParameterType.string(enum=("celsius", "fahrenheit")),
                description="Temperature units",
            ),
        ),
    )

    @property
    def definition(self) -> ToolDefinition:
        return self._DEFINITION

    def validate_args(self, args: Mapping[str, Any]) -> None:
        if not str(args.get("location", "")).strip():
            raise InvalidArgument("Location cannot be empty")

    async def execute(self, args: dict[str, Any]) -> Any:
        units = args.get("units") or "celsius"
        temperature = 72.5 if units == "fahrenheit" else 22.5
        return {
            "location": args["location"],
            "temperature": temperature,
            "units": units,
            "condition": "Partly Cloudy",
            "humidity": 65,
            "wind_speed": 10,
            "forecast": [
                {
                    "day": "Today",
                    "high": temperature + 2,
                    "low": temperature - 5,
                    "condition": "Partly Cloudy",
                },
                {
                    "day": "Tomorrow",
                    "high": temperature + 4,
                    "low": temperature - 3,
                    "condition": "Sunny",
                },
            ],
        }


_SEARCH_RESULTS: Final[tuple[dict[str, str], ...]] = (
    {
        "title": "Example Search Result 1",
        "url": "https://example.com/result1",
        "snippet": "This is the first search result snippet.",
    },
    {
        "title": "Example Search Result 2",
        "url": "https://example.com/result2",
        "snippet": "This is the second search result snippet.",
    },
    {
        "title": "Example Search Result 3",
        "url": "https://example.com/result3",
        "snippet": "This is the third search result snippet.",
    },
)


class SearchTool(ToolExecutor):
    _DEFINITION: Final = ToolDefinition(
        name="search_web",
        description="Search the web for information",
        parameters=(
            ToolParameter("query", ParameterType.string(), required=True,
                          description="The search query"),
            ToolParameter("num_results", ParameterType.number(minimum=1, maximum=10),
                          description="Number of results to return"),
        ),
    )

    @property
    def definition(self) -> ToolDefinition:
        return self._DEFINITION

    def validate_args(self, args: Mapping[str, Any]) -> None:
        if not str(args.get("query", "")).strip():
            raise InvalidArgument("Query cannot be empty")

    async def execute(self, args: dict[str, Any]) -> Any:
        limit = int(args.get("num_results") or len(_SEARCH_RESULTS))
        return {
            "query": args["query"],
            "results": [dict(r) for r in _SEARCH_RESULTS[:limit]],
        }


_NUMBER = r"-?\d+(?:\.\d+)?"
_BINARY_EXPR: Final = re.compile(rf"^\s*({_NUMBER})\s*([-+*/])\s*({_NUMBER})\s*$")


def evaluate(expression: str) -> float:
    """
    Evaluate ``"<number>"`` or ``"<number> <op> <number>"`` with op in ``+ - * /``.

    Raises:
        InvalidArgument: Division by zero or an unsupported expression.
    """
    match = _BINARY_EXPR.match(expression)
    if match is None:
        try:
            return float(expression.strip())
        except ValueError:
            raise InvalidArgument(f"Unsupported expression: {expression}") from None

    left, op, right = float(match.group(1)), match.group(2), float(match.group(3))
    if op == "+":
        return left + right
    if op == "-":
        return left - right
    if op == "*":
        return left * right
    if right == 0:
        raise InvalidArgument("Division by zero is not allowed")
    return left / right


class CalculatorTool(ToolExecutor):
    _DEFINITION: Final = ToolDefinition(
        name="calculate",
        description="Evaluate a simple arithmetic expression such as '10 / 2'",
        parameters=(
            ToolParameter("expression", ParameterType.string(), required=True,
                          description="A number, or two numbers joined by + - * /"),
        ),
    )

    @property
    def definition(self) -> ToolDefinition:
        return self._DEFINITION

    def validate_args(self, args: Mapping[str, Any]) -> None:
        if not str(args.get("expression", "")).strip():
            raise InvalidArgument("Expression cannot be empty")

    async def execute(self, args: dict[str, Any]) -> Any:
        expression = args["expression"]
        return {"expression": expression, "result": evaluate(expression)}


async def default_registry(registry: Optional[ToolRegistry] = None) -> ToolRegistry:
    """Return ``registry`` (or a new one) with the demonstration tools registered."""
    if registry is None:
        registry = ToolRegistry()
    for tool in (WeatherTool(), SearchTool(), CalculatorTool()):
        await registry.register(tool)
    return registry
