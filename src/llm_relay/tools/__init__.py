from .definition import ParameterKind, ParameterType, ToolDefinition, ToolParameter
from .executor import FunctionTool, RemoteToolExecutor, ToolExecutor
from .registry import ToolRegistry
from .builtin import CalculatorTool, SearchTool, WeatherTool, default_registry, evaluate

__all__ = [
    "ParameterKind",
    "ParameterType",
    "ToolDefinition",
    "ToolParameter",
    "ToolExecutor",
    "FunctionTool",
    "RemoteToolExecutor",
    "ToolRegistry",
    "WeatherTool",
    "SearchTool",
    "CalculatorTool",
    "evaluate",
    "default_registry",
]
