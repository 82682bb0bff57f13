"""Conversation session lifecycle."""

from persona_chat.core.conversation.client import Notification, SessionClient
from persona_chat.core.conversation.errors import (
    ChatError,
    ErrorKind,
    InvalidSessionHandle,
    MissingUserMessage,
    RunOperationFailed,
    RunStatusError,
    RunTimeout,
    ThreadOperationFailed,
)
from persona_chat.core.conversation.generator import ResponseGenerator
from persona_chat.core.conversation.models import (
    ConversationLog,
    GenerationResult,
    Message,
    Role,
    Run,
    RunStatus,
    SessionHandle,
)

__all__ = [
    "ChatError",
    "ConversationLog",
    "ErrorKind",
    "GenerationResult",
    "InvalidSessionHandle",
    "Message",
    "MissingUserMessage",
    "Notification",
    "ResponseGenerator",
    "Role",
    "Run",
    "RunOperationFailed",
    "RunStatus",
    "RunStatusError",
    "RunTimeout",
    "SessionClient",
    "SessionHandle",
    "ThreadOperationFailed",
]
