"""
Tool definitions and their JSON Schema projection.

A `ToolDefinition` is plain data: a unique name, a description and an ordered
list of typed `ToolParameter`s. `to_json_schema()` is pure; calling it twice
on an unchanged definition gives equal output.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any, Iterable, Mapping, Optional, Sequence

from llm_relay.errors import InvalidArgument, MissingParameter

__all__ = ["ParameterKind", "ParameterType", "ToolParameter", "ToolDefinition"]


class ParameterKind(StrEnum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


@dataclass(frozen=True, slots=True)
class ParameterType:
    """Type tag plus the constraints that belong to it."""

    kind: ParameterKind
    format: Optional[str] = None
    enum_values: Optional[tuple[str, ...]] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    properties: tuple["ToolParameter", ...] = ()
    items: Optional["ParameterType"] = None

    @classmethod
    def string(
        cls, *, format: Optional[str] = None, enum: Optional[Iterable[str]] = None
    ) -> "ParameterType":
        return cls(
            ParameterKind.STRING,
            format=format,
            enum_values=tuple(enum) if enum is not None else None,
        )

    @classmethod
    def number(
        cls, *, minimum: Optional[float] = None, maximum: Optional[float] = None
    ) -> "ParameterType":
        return cls(ParameterKind.NUMBER, minimum=minimum, maximum=maximum)

    @classmethod
    def boolean(cls) -> "ParameterType":
        return cls(ParameterKind.BOOLEAN)

    @classmethod
    def object(cls, *properties: "ToolParameter") -> "ParameterType":
        return cls(ParameterKind.OBJECT, properties=tuple(properties))

    @classmethod
    def array(cls, items: "ParameterType") -> "ParameterType":
        return cls(ParameterKind.ARRAY, items=items)

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.kind.value}
        if self.kind is ParameterKind.STRING:
            if self.format is not None:
                schema["format"] = self.format
            if self.enum_values is not None:
                schema["enum"] = list(self.enum_values)
        elif self.kind is ParameterKind.NUMBER:
            if self.minimum is not None:
                schema["minimum"] = self.minimum
            if self.maximum is not None:
                schema["maximum"] = self.maximum
        elif self.kind is ParameterKind.OBJECT:
            schema.update(_object_schema(self.properties))
        elif self.kind is ParameterKind.ARRAY and self.items is not None:
            schema["items"] = self.items.to_json_schema()
        return schema

    def check(self, path: str, value: Any) -> None:
        """Raise InvalidArgument if ``value`` does not fit this type."""
        kind = self.kind
        if kind is ParameterKind.STRING:
            if not isinstance(value, str):
                raise InvalidArgument(f"'{path}' must be a string")
            if self.enum_values is not None and value not in self.enum_values:
                allowed = ", ".join(self.enum_values)
                raise InvalidArgument(f"'{path}' must be one of: {allowed}")
        elif kind is ParameterKind.NUMBER:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidArgument(f"'{path}' must be a number")
            if self.minimum is not None and value < self.minimum:
                raise InvalidArgument(f"'{path}' must be >= {self.minimum:g}")
            if self.maximum is not None and value > self.maximum:
                raise InvalidArgument(f"'{path}' must be <= {self.maximum:g}")
        elif kind is ParameterKind.BOOLEAN:
            if not isinstance(value, bool):
                raise InvalidArgument(f"'{path}' must be a boolean")
        elif kind is ParameterKind.OBJECT:
            if not isinstance(value, Mapping):
                raise InvalidArgument(f"'{path}' must be an object")
            _check_parameters(self.properties, value, prefix=f"{path}.")
        elif kind is ParameterKind.ARRAY:
            if not isinstance(value, list):
                raise InvalidArgument(f"'{path}' must be an array")
            if self.items is not None:
                for index, item in enumerate(value):
                    self.items.check(f"{path}[{index}]", item)


@dataclass(frozen=True, slots=True)
class ToolParameter:
    name: str
    type: ParameterType
    required: bool = False
    description: Optional[str] = None

    def to_json_schema(self) -> dict[str, Any]:
        schema = self.type.to_json_schema()
        if self.description:
            schema["description"] = self.description
        return schema


def _object_schema(parameters: Sequence[ToolParameter]) -> dict[str, Any]:
    return {
        "properties": {p.name: p.to_json_schema() for p in parameters},
        "required": [p.name for p in parameters if p.required],
    }


def _check_parameters(
    parameters: Sequence[ToolParameter], args: Mapping[str, Any], *, prefix: str = ""
) -> None:
    for param in parameters:
        value = args.get(param.name)
        if value is None:
            if param.required:
                raise MissingParameter(f"{prefix}{param.name}")
            continue
        param.type.check(f"{prefix}{param.name}", value)


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """A named, schema-described capability a model may invoke."""

    name: str
    description: str
    parameters: tuple[ToolParameter, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool name must not be empty")
        object.__setattr__(self, "parameters", tuple(self.parameters))
        seen: set[str] = set()
        for param in self.parameters:
            if param.name in seen:
                raise ValueError(f"Duplicate parameter '{param.name}' in tool '{self.name}'")
            seen.add(param.name)

    def to_json_schema(self) -> dict[str, Any]:
        return {"type": "object", **_object_schema(self.parameters)}

    def validate_args(self, args: Mapping[str, Any]) -> None:
        """
        Check ``args`` against the declared parameters.

        Raises:
            MissingParameter: A required parameter is absent (checked first).
            InvalidArgument: A supplied value has the wrong type or range.
        """
        if not isinstance(args, Mapping):
            raise InvalidArgument("arguments must be a JSON object")
        for param in self.parameters:
            if param.required and args.get(param.name) is None:
                raise MissingParameter(param.name)
        _check_parameters(self.parameters, args)

    def with_parameters(self, parameters: Iterable[ToolParameter]) -> "ToolDefinition":
        return replace(self, parameters=tuple(parameters))
