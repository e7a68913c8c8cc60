"""Canonical chat message shape shared by every chat adapter."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Iterable, Mapping, Union

__all__ = ["Role", "ChatMessage", "MessageLike", "coerce_messages"]


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass(slots=True)
class ChatMessage:
    """One conversation turn. Ephemeral, scoped to a single request."""

    role: Role
    content: str

    def __post_init__(self) -> None:
        try:
            self.role = Role(self.role)
        except ValueError as exc:
            raise ValueError(f"Unknown chat role: {self.role!r}") from exc
        if self.content is None:
            self.content = ""
        elif not isinstance(self.content, str):
            raise TypeError(
                f"content must be a string, got {type(self.content).__name__}"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatMessage":
        return cls(role=data.get("role", "user"), content=data.get("content") or "")

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


MessageLike = Union[ChatMessage, Mapping[str, Any]]


def coerce_messages(messages: Iterable[MessageLike]) -> list[ChatMessage]:
    """Accept `ChatMessage` objects or plain ``{"role", "content"}`` dicts."""
    return [
        m if isinstance(m, ChatMessage) else ChatMessage.from_dict(m)
        for m in messages
    ]
