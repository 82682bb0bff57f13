"""Base assistant backend interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class RunStatus(str, Enum):
    """Lifecycle status of a remote run."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    CANCELLING = "cancelling"
    REQUIRES_ACTION = "requires_action"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    INCOMPLETE = "incomplete"

    @property
    def is_terminal(self) -> bool:
        return self not in _PENDING_STATUSES

    @property
    def is_success(self) -> bool:
        return self is RunStatus.COMPLETED


# requires_action counts as terminal: no tools are registered on the assistant
_PENDING_STATUSES = frozenset({RunStatus.QUEUED, RunStatus.IN_PROGRESS, RunStatus.CANCELLING})


class Run(BaseModel):
    """A remote execution against a session. Never persisted."""

    id: str
    session_id: str
    status: RunStatus
    last_error: dict[str, Any] | None = None


class RemoteMessage(BaseModel):
    """A message as listed by the remote service."""

    id: str
    role: str
    text_blocks: list[str] = Field(default_factory=list)
    run_id: str | None = None  # Run that produced the message, None for user turns


class AssistantBackend(ABC):
    """Abstract thread + run surface of a remote assistant service.

    Implementations raise their own exceptions; callers classify them.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name."""
        ...

    @abstractmethod
    async def create_session(self) -> str:
        """Create a remote session and return its identifier."""
        ...

    @abstractmethod
    async def retrieve_session(self, session_id: str) -> str:
        """Fetch an existing session and return its identifier."""
        ...

    @abstractmethod
    async def append_user_message(self, session_id: str, content: str) -> str:
        """Add a user turn to the session. Returns the remote message id."""
        ...

    @abstractmethod
    async def start_run(
        self,
        session_id: str,
        assistant_id: str,
        instructions: str | None = None,
        model: str | None = None,
    ) -> Run:
        """Start a run against the session."""
        ...

    @abstractmethod
    async def get_run(self, session_id: str, run_id: str) -> Run:
        """Fetch the current state of a run."""
        ...

    @abstractmethod
    async def list_recent_messages(self, session_id: str, limit: int = 10) -> list[RemoteMessage]:
        """List session messages, newest first."""
        ...

    @abstractmethod
    async def cancel_run(self, session_id: str, run_id: str) -> Run:
        """Ask the service to cancel a run."""
        ...
