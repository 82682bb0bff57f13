"""Unit tests for conversation models and error classification."""

import pytest
from pydantic import ValidationError

from persona_chat.core.conversation.errors import (
    ChatError,
    ErrorKind,
    InvalidSessionHandle,
    MissingUserMessage,
    RunOperationFailed,
    RunStatusError,
    RunTimeout,
    ThreadOperationFailed,
    classify,
)
from persona_chat.core.conversation.models import (
    ConversationLog,
    Message,
    Role,
    RunStatus,
    SessionHandle,
)

PATTERN = r"^thread_[A-Za-z0-9]+$"


class TestSessionHandle:
    """Tests for session id validation."""

    def test_valid_id(self) -> None:
        """Test a well-formed id is accepted."""
        handle = SessionHandle.parse("thread_abc123", PATTERN)

        assert handle is not None
        assert handle.value == "thread_abc123"
        assert str(handle) == "thread_abc123"

    def test_surrounding_whitespace_is_stripped(self) -> None:
        """Test whitespace around a valid id is ignored."""
        handle = SessionHandle.parse("  thread_abc123\n", PATTERN)

        assert handle == SessionHandle.parse("thread_abc123", PATTERN)

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc123", "thread_", "thread_abc 123", "run_abc"])
    def test_invalid_ids_are_absent(self, raw: str | None) -> None:
        """Test missing, blank and malformed ids parse to None."""
        assert SessionHandle.parse(raw, PATTERN) is None

    def test_custom_pattern(self) -> None:
        """Test the shape check follows the configured pattern."""
        assert SessionHandle.parse("conv-42", r"^conv-\d+$") is not None
        assert SessionHandle.parse("thread_abc", r"^conv-\d+$") is None


class TestConversationLog:
    """Tests for ConversationLog."""

    def test_last_user_is_last_occurrence(self) -> None:
        """Test the newest user message is selected, not the tail."""
        log = ConversationLog()
        log.append(Message(role=Role.USER, content="first"))
        log.append(Message(role=Role.ASSISTANT, content="reply"))
        second = log.append(Message(role=Role.USER, content="second"))
        log.append(Message(role=Role.ASSISTANT, content="late reply"))

        assert log.last_user() == second
        assert len(log) == 4

    def test_last_user_empty(self) -> None:
        """Test a log without user messages."""
        log = ConversationLog([Message(role=Role.SYSTEM, content="be brief")])

        assert log.last_user() is None

    def test_payload_preserves_order(self) -> None:
        """Test payload conversion keeps insertion order."""
        log = ConversationLog(
            [
                Message(role=Role.USER, content="a"),
                Message(role=Role.ASSISTANT, content="b"),
            ]
        )

        assert log.to_payload() == [
            {"role": "user", "content": "a"},
            {"role": "assistant", "content": "b"},
        ]

    def test_messages_are_immutable(self) -> None:
        """Test messages cannot be edited after creation."""
        message = Message(role=Role.USER, content="hello")

        with pytest.raises(ValidationError):
            message.content = "changed"  # type: ignore[misc]

    def test_message_ids_are_unique(self) -> None:
        """Test each message gets its own id."""
        assert Message(role=Role.USER, content="x").id != Message(role=Role.USER, content="x").id


class TestRunStatus:
    """Tests for run status classification."""

    @pytest.mark.parametrize("status", [RunStatus.QUEUED, RunStatus.IN_PROGRESS, RunStatus.CANCELLING])
    def test_pending_statuses(self, status: RunStatus) -> None:
        assert not status.is_terminal

    @pytest.mark.parametrize(
        "status",
        [RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED, RunStatus.EXPIRED, RunStatus.REQUIRES_ACTION],
    )
    def test_terminal_statuses(self, status: RunStatus) -> None:
        assert status.is_terminal

    def test_only_completed_is_success(self) -> None:
        assert [s for s in RunStatus if s.is_success] == [RunStatus.COMPLETED]


class TestChatErrors:
    """Tests for the tagged error hierarchy."""

    def test_message_carries_tag_prefix(self) -> None:
        """Test str() keeps the [TAG] prefix for prefix matching."""
        error = ThreadOperationFailed("Failed to create session: boom")

        assert str(error).startswith("[THREAD_OPERATION_FAILED]")
        assert error.kind is ErrorKind.THREAD_OPERATION_FAILED

    @pytest.mark.parametrize(
        ("error", "drops"),
        [
            (ThreadOperationFailed("x"), True),
            (InvalidSessionHandle("x"), True),
            (RunTimeout("x"), True),
            (RunStatusError("x", status="failed"), False),
            (MissingUserMessage("x"), False),
            (RunOperationFailed("x"), False),
        ],
    )
    def test_session_drop_policy(self, error: ChatError, drops: bool) -> None:
        """Test which kinds discard the held session id."""
        assert error.kind.drops_session is drops

    def test_run_status_error_carries_status(self) -> None:
        """Test the terminal status is kept on the error."""
        error = RunStatusError("Run run_1 ended with status expired", status="expired", run_id="run_1")

        assert error.status == "expired"
        assert "(status: expired)" in error.user_message
        assert error.to_dict()["details"] == {"status": "expired", "run_id": "run_1"}

    def test_user_message_hides_detail(self) -> None:
        """Test the transcript summary does not leak internal detail."""
        error = RunOperationFailed("Failed to start run in session thread_x: HTTP 500 secret-key-id")

        assert "secret-key-id" not in error.user_message
        assert error.user_message.startswith("[RUN_OPERATION_FAILED]")

    def test_classify_wraps_unknown_errors(self) -> None:
        """Test unclassified exceptions become UNKNOWN errors."""
        original = KeyError("oops")
        error = classify(original)

        assert error.kind is ErrorKind.UNKNOWN
        assert error.__cause__ is original
        assert not error.kind.drops_session

    def test_classify_keeps_chat_errors(self) -> None:
        error = MissingUserMessage("none")

        assert classify(error) is error
