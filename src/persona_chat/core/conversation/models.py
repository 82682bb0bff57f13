"""Conversation data models."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from persona_chat.infrastructure.assistants.base import RemoteMessage, Run, RunStatus

__all__ = [
    "ConversationLog",
    "GenerationResult",
    "Message",
    "RemoteMessage",
    "Role",
    "Run",
    "RunStatus",
    "SessionHandle",
]


class Role(str, Enum):
    """Message author role."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """A single transcript entry. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    role: Role
    content: str


class ConversationLog:
    """Ordered, append-only list of messages. Insertion order is conversation order."""

    def __init__(self, messages: Iterable[Message] | None = None) -> None:
        self._messages: list[Message] = list(messages or [])

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def last_user(self) -> Message | None:
        """Return the last message authored by the user, if any."""
        for message in reversed(self._messages):
            if message.role == Role.USER:
                return message
        return None

    def to_payload(self) -> list[dict[str, str]]:
        return [{"role": m.role.value, "content": m.content} for m in self._messages]

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]


class SessionHandle(BaseModel):
    """Validated identifier of a remote conversation session.

    Treat the value as an opaque capability token. Instances are only
    built through :meth:`parse`, so holding one means the shape check passed.
    """

    model_config = ConfigDict(frozen=True)

    value: str

    @classmethod
    def parse(cls, raw: str | None, pattern: str) -> SessionHandle | None:
        """Validate ``raw`` against ``pattern``.

        Returns None for missing, blank, or malformed identifiers.
        """
        if not isinstance(raw, str):
            return None
        candidate = raw.strip()
        if not candidate or not re.fullmatch(pattern, candidate):
            return None
        return cls(value=candidate)

    def __str__(self) -> str:
        return self.value


class GenerationResult(BaseModel):
    """Reply text plus the session id to use for the next turn."""

    text: str
    session_id: str | None = None
