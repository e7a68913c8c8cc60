"""
Provider-neutral dataclasses for tool use.

They are intentionally minimal: everything provider-specific lives in the
function-calling adapters.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal, Mapping, Optional

__all__ = ["ToolCall", "ToolResult", "ToolExecutionOutcome", "ToolChoice"]


@dataclass(slots=True)
class ToolCall:
    """A model-issued request to run one tool."""
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ToolResult:
    """Payload to send back to the model after the tool finished running."""
    tool_call_id: str           # must match the ToolCall id
    result: Any

    def as_dict(self) -> dict[str, Any]:
        return {"tool_call_id": self.tool_call_id, "result": self.result}


@dataclass(slots=True)
class ToolExecutionOutcome:
    """What every sandbox tool returns; failures travel as data."""
    success: bool
    output: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, output: str) -> "ToolExecutionOutcome":
        return cls(success=True, output=output)

    @classmethod
    def fail(cls, error: str, output: str = "") -> "ToolExecutionOutcome":
        return cls(success=False, output=output, error=error)

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "output": self.output}
        if self.error is not None:
            data["error"] = self.error
        return data


ChoiceKind = Literal["auto", "required", "none", "specific"]


@dataclass(frozen=True, slots=True)
class ToolChoice:
    """Tool-choice policy: Auto, Required, None or Specific(name)."""

    kind: ChoiceKind
    name: Optional[str] = None

    AUTO: ClassVar["ToolChoice"]
    REQUIRED: ClassVar["ToolChoice"]
    NONE: ClassVar["ToolChoice"]

    def __post_init__(self) -> None:
        if self.kind not in ("auto", "required", "none", "specific"):
            raise ValueError(f"Unknown tool choice: {self.kind!r}")
        if (self.kind == "specific") != bool(self.name):
            raise ValueError("A tool name is required for, and only for, a specific choice")

    @classmethod
    def specific(cls, name: str) -> "ToolChoice":
        return cls("specific", name)

    @classmethod
    def parse(cls, value: "str | Mapping[str, Any] | ToolChoice | None") -> "ToolChoice":
        """Read a policy from ``"auto"``/``"required"``/``"none"`` or ``{"name": ...}``."""
        if value is None:
            return cls.AUTO
        if isinstance(value, ToolChoice):
            return value
        if isinstance(value, Mapping):
            name = value.get("name") or (value.get("function") or {}).get("name")
            return cls.specific(name)
        return cls(str(value).lower())


ToolChoice.AUTO = ToolChoice("auto")
ToolChoice.REQUIRED = ToolChoice("required")
ToolChoice.NONE = ToolChoice("none")
