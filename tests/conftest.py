"""Pytest fixtures for persona chat tests."""

import asyncio
from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from persona_chat.api.app import create_app
from persona_chat.config import AssistantSettings, SessionSettings, Settings
from persona_chat.core.conversation.client import Notification, SessionClient
from persona_chat.core.conversation.generator import ResponseGenerator
from persona_chat.infrastructure.assistants.base import (
    AssistantBackend,
    RemoteMessage,
    Run,
    RunStatus,
)
from persona_chat.infrastructure.storage.session_store import InMemorySessionStore

DEFAULT_REPLY = "For pressure vessels, SA-516 Grade 70 is the usual choice."


class FakeAssistantBackend(AssistantBackend):
    """Scripted in-memory thread + run service.

    Every run starts with ``start_status`` and then reports
    ``run_statuses`` one per ``get_run`` call, repeating the last entry.
    Operations named in ``fail_on`` raise. With ``answer_runs`` off a
    completed run adds no assistant message.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.sessions: dict[str, list[RemoteMessage]] = {}
        self.start_status = RunStatus.QUEUED
        self.run_statuses: list[RunStatus] = [RunStatus.IN_PROGRESS, RunStatus.COMPLETED]
        self.reply_blocks: list[str] = [DEFAULT_REPLY]
        self.fail_on: set[str] = set()
        self.answer_runs = True
        self.created_session_id: str | None = None
        self.run_gate: asyncio.Event | None = None
        self.started_runs: list[dict[str, Any]] = []
        self.cancelled_runs: list[str] = []
        self._pending: dict[str, list[RunStatus]] = {}
        self._answered: set[str] = set()
        self._counter = 0

    @property
    def name(self) -> str:
        return "fake"

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise RuntimeError(f"{operation} exploded")

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter}"

    def _answer(self, session_id: str, run_id: str) -> None:
        if run_id in self._answered or not self.answer_runs:
            return
        self._answered.add(run_id)
        self.sessions[session_id].append(
            RemoteMessage(
                id=self._next_id("msg_"),
                role="assistant",
                text_blocks=list(self.reply_blocks),
                run_id=run_id,
            )
        )

    def call_count(self, operation: str) -> int:
        return self.calls.count(operation)

    async def create_session(self) -> str:
        self._record("create_session")
        session_id = self.created_session_id or self._next_id("thread_fake")
        self.sessions[session_id] = []
        return session_id

    async def retrieve_session(self, session_id: str) -> str:
        self._record("retrieve_session")
        if session_id not in self.sessions:
            raise LookupError(f"No thread found with id '{session_id}'")
        return session_id

    async def append_user_message(self, session_id: str, content: str) -> str:
        self._record("append_user_message")
        message = RemoteMessage(id=self._next_id("msg_"), role="user", text_blocks=[content])
        self.sessions.setdefault(session_id, []).append(message)
        return message.id

    async def start_run(
        self,
        session_id: str,
        assistant_id: str,
        instructions: str | None = None,
        model: str | None = None,
    ) -> Run:
        self._record("start_run")
        run_id = self._next_id("run_")
        self.started_runs.append(
            {
                "session_id": session_id,
                "assistant_id": assistant_id,
                "instructions": instructions,
                "model": model,
            }
        )
        self._pending[run_id] = list(self.run_statuses)
        if self.start_status is RunStatus.COMPLETED:
            self._answer(session_id, run_id)
        return Run(id=run_id, session_id=session_id, status=self.start_status)

    async def get_run(self, session_id: str, run_id: str) -> Run:
        self._record("get_run")
        if self.run_gate is not None:
            await self.run_gate.wait()
        statuses = self._pending[run_id]
        status = statuses.pop(0) if len(statuses) > 1 else statuses[0]
        if status is RunStatus.COMPLETED:
            self._answer(session_id, run_id)
        last_error = {"code": "server_error", "message": "model overloaded"} if status is RunStatus.FAILED else None
        return Run(id=run_id, session_id=session_id, status=status, last_error=last_error)

    async def list_recent_messages(self, session_id: str, limit: int = 10) -> list[RemoteMessage]:
        self._record("list_recent_messages")
        return list(reversed(self.sessions.get(session_id, [])))[:limit]

    async def cancel_run(self, session_id: str, run_id: str) -> Run:
        self._record("cancel_run")
        self.cancelled_runs.append(run_id)
        self._pending[run_id] = [RunStatus.CANCELLED]
        return Run(id=run_id, session_id=session_id, status=RunStatus.CANCELLING)


class SleepRecorder:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def backend() -> FakeAssistantBackend:
    """Create a scripted assistant backend."""
    return FakeAssistantBackend()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    """Create a sleep stand-in."""
    return SleepRecorder()


@pytest.fixture
def assistant_settings() -> AssistantSettings:
    """Create assistant settings for tests."""
    return AssistantSettings(
        api_key=None,
        assistant_id="asst_test",
        poll_interval_seconds=1.0,
        max_poll_attempts=5,
        poll_timeout_seconds=60.0,
    )


@pytest.fixture
def generator(
    backend: FakeAssistantBackend,
    assistant_settings: AssistantSettings,
    sleep_recorder: SleepRecorder,
) -> ResponseGenerator:
    """Create a response generator over the fake backend."""
    return ResponseGenerator(backend, assistant_settings, sleep=sleep_recorder)


@pytest.fixture
def session_settings() -> SessionSettings:
    """Create session client settings for tests."""
    return SessionSettings(store="memory")


@pytest.fixture
def session_store() -> InMemorySessionStore:
    """Create an in-memory session id store."""
    return InMemorySessionStore()


@pytest.fixture
def notifications() -> list[Notification]:
    """Collect notifications emitted by the session client."""
    return []


@pytest.fixture
def session_client(
    generator: ResponseGenerator,
    session_store: InMemorySessionStore,
    session_settings: SessionSettings,
    notifications: list[Notification],
) -> SessionClient:
    """Create a session client over the fake backend."""
    return SessionClient(generator, session_store, session_settings, notify=notifications.append)


@pytest.fixture
def test_settings(assistant_settings: AssistantSettings) -> Settings:
    """Create test settings."""
    return Settings(environment="development", assistant=assistant_settings)


@pytest.fixture
def app(test_settings: Settings, generator: ResponseGenerator) -> Any:
    """Create test FastAPI application wired to the fake backend."""
    app = create_app(test_settings)
    app.state.generator = generator
    return app


@pytest.fixture
def client(app: Any) -> Generator[TestClient, None, None]:
    """Create synchronous test client with the auth cookie set."""
    with TestClient(app) as client:
        client.cookies.set(app.state.settings.auth.cookie_name, "true")
        yield client
