"""Classified conversation errors.

Every failure surfaced by the response generator is a :class:`ChatError`
carrying a machine-readable :class:`ErrorKind`. ``str(error)`` keeps the
``[TAG] detail`` form so callers that only see the message text can still
match on the prefix.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error classification used for recovery decisions."""

    THREAD_OPERATION_FAILED = "THREAD_OPERATION_FAILED"
    INVALID_SESSION_HANDLE = "INVALID_SESSION_HANDLE"
    MISSING_USER_MESSAGE = "MISSING_USER_MESSAGE"
    RUN_STATUS_ERROR = "RUN_STATUS_ERROR"
    RUN_OPERATION_FAILED = "RUN_OPERATION_FAILED"
    RUN_TIMEOUT = "RUN_TIMEOUT"
    UNKNOWN = "UNKNOWN"

    @property
    def tag(self) -> str:
        return f"[{self.value}]"

    @property
    def drops_session(self) -> bool:
        """Whether the held session id must be discarded after this error."""
        return self in _SESSION_FATAL_KINDS


_SESSION_FATAL_KINDS = frozenset(
    {
        ErrorKind.THREAD_OPERATION_FAILED,
        ErrorKind.INVALID_SESSION_HANDLE,
        ErrorKind.RUN_TIMEOUT,
    }
)

_USER_SUMMARIES: dict[ErrorKind, str] = {
    ErrorKind.THREAD_OPERATION_FAILED: "The conversation could not be opened. A new one will be started.",
    ErrorKind.INVALID_SESSION_HANDLE: "The conversation service returned an unusable session. A new one will be started.",
    ErrorKind.MISSING_USER_MESSAGE: "There was no question to send.",
    ErrorKind.RUN_STATUS_ERROR: "The assistant could not finish its reply.",
    ErrorKind.RUN_OPERATION_FAILED: "The message could not be delivered to the assistant.",
    ErrorKind.RUN_TIMEOUT: "The assistant took too long to reply. A new conversation will be started.",
    ErrorKind.UNKNOWN: "Something went wrong. Try again.",
}


class ChatError(Exception):
    """Base class for classified conversation errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, detail: str, **context: Any) -> None:
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def __str__(self) -> str:
        return f"{self.kind.tag} {self.detail}"

    @property
    def user_message(self) -> str:
        """Summary safe to show in the transcript."""
        return f"{self.kind.tag} {_USER_SUMMARIES[self.kind]}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.kind.value,
            "message": str(self),
            "details": {k: v for k, v in self.context.items() if v is not None},
        }


class ThreadOperationFailed(ChatError):
    """Session create/retrieve call itself errored."""

    kind = ErrorKind.THREAD_OPERATION_FAILED


class InvalidSessionHandle(ChatError):
    """A session object was returned but fails shape validation."""

    kind = ErrorKind.INVALID_SESSION_HANDLE


class MissingUserMessage(ChatError):
    """No user-role message present to submit."""

    kind = ErrorKind.MISSING_USER_MESSAGE


class RunOperationFailed(ChatError):
    """Submitting the message, starting or polling the run errored."""

    kind = ErrorKind.RUN_OPERATION_FAILED


class RunStatusError(ChatError):
    """Run reached a terminal non-success status."""

    kind = ErrorKind.RUN_STATUS_ERROR

    def __init__(self, detail: str, *, status: str, **context: Any) -> None:
        super().__init__(detail, status=status, **context)
        self.status = status

    @property
    def user_message(self) -> str:
        return f"{super().user_message} (status: {self.status})"


class RunTimeout(ChatError):
    """Run did not reach a terminal status within the polling bound."""

    kind = ErrorKind.RUN_TIMEOUT


def classify(error: BaseException) -> ChatError:
    """Return ``error`` as a ChatError, wrapping unclassified exceptions."""
    if isinstance(error, ChatError):
        return error
    wrapped = ChatError(str(error) or type(error).__name__, error_type=type(error).__name__)
    wrapped.__cause__ = error
    return wrapped
