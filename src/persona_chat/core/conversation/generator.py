"""Response generation over a remote thread + run assistant service."""

import asyncio
import time
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from persona_chat.config import AssistantSettings, InjectedSystemMessage
from persona_chat.core.conversation.errors import (
    ChatError,
    InvalidSessionHandle,
    MissingUserMessage,
    RunOperationFailed,
    RunStatusError,
    RunTimeout,
    ThreadOperationFailed,
)
from persona_chat.core.conversation.models import (
    GenerationResult,
    Message,
    Role,
    Run,
    SessionHandle,
)
from persona_chat.core.conversation.polling import SleepFn, wait_for_run
from persona_chat.infrastructure.assistants.base import AssistantBackend
from persona_chat.infrastructure.observability.metrics import (
    GENERATION_ERRORS,
    GENERATION_LATENCY,
    RUNS_TOTAL,
    SESSIONS_CREATED,
)
from persona_chat.infrastructure.observability.telemetry import ChatSpanAttributes, get_tracer

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

MessageLike = Message | Mapping[str, Any]


def latest_user_content(messages: Iterable[MessageLike]) -> str | None:
    """Return the content of the last user-authored message, if any."""
    content: str | None = None
    for message in messages:
        if isinstance(message, Message):
            role, text = message.role.value, message.content
        else:
            raw_role = message.get("role", "")
            role, text = getattr(raw_role, "value", raw_role), message.get("content")
        if role == Role.USER.value and isinstance(text, str):
            content = text
    return content


class ResponseGenerator:
    """Produces one assistant reply per call against a remote session.

    Stateless between calls: the caller supplies the session id it holds
    and receives the id to use next time. Only the newest user message is
    submitted; the remote session keeps its own turn history.
    """

    def __init__(
        self,
        backend: AssistantBackend,
        settings: AssistantSettings,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._settings = settings
        self._sleep = sleep

    @property
    def session_id_pattern(self) -> str:
        return self._settings.session_id_pattern

    async def generate(
        self,
        messages: Iterable[MessageLike],
        session_id: str | None = None,
    ) -> GenerationResult:
        """Generate the assistant's reply to the newest user message.

        Args:
            messages: Ordered conversation log.
            session_id: Session id from a previous call. Malformed values are
                treated as absent.

        Returns:
            Reply text and the session id for the next call.

        Raises:
            ChatError: Classified failure. See ``ErrorKind``.
        """
        start_time = time.perf_counter()

        with tracer.start_as_current_span("persona_chat.generate") as span:
            span.set_attribute(ChatSpanAttributes.ASSISTANT_ID, self._settings.assistant_id)
            span.set_attribute(ChatSpanAttributes.PERSONA_MODE, self._settings.persona.mode)
            try:
                content = latest_user_content(messages)
                if content is None:
                    raise MissingUserMessage("No user message to submit")

                handle = await self._resolve_session(session_id)
                span.set_attribute(ChatSpanAttributes.SESSION_ID, handle.value)

                run = await self._start_run(handle, content)
                span.set_attribute(ChatSpanAttributes.RUN_ID, run.id)

                run = await self._wait(run)
                span.set_attribute(ChatSpanAttributes.RUN_STATUS, run.status.value)
                RUNS_TOTAL.labels(status=run.status.value).inc()

                if not run.status.is_success:
                    reason = (run.last_error or {}).get("message")
                    raise RunStatusError(
                        f"Run {run.id} ended with status {run.status.value}"
                        + (f": {reason}" if reason else ""),
                        status=run.status.value,
                        session_id=handle.value,
                        run_id=run.id,
                    )

                text = await self._extract_reply(handle, run)
            except ChatError as e:
                GENERATION_ERRORS.labels(kind=e.kind.value).inc()
                span.set_attribute(ChatSpanAttributes.ERROR_KIND, e.kind.value)
                logger.warning("Response generation failed", kind=e.kind.value, error=e.detail)
                raise
            finally:
                GENERATION_LATENCY.observe(time.perf_counter() - start_time)

        logger.info(
            "Response generated",
            session_id=handle.value,
            run_id=run.id,
            reply_chars=len(text),
        )
        return GenerationResult(text=text, session_id=handle.value)

    async def _resolve_session(self, session_id: str | None) -> SessionHandle:
        """Reuse the caller's session when possible, otherwise create one."""
        pattern = self._settings.session_id_pattern
        requested = SessionHandle.parse(session_id, pattern)
        if session_id is not None and requested is None:
            logger.warning("Ignoring malformed session id", session_id=session_id)

        raw_id: str | None = None
        if requested is not None:
            try:
                raw_id = await self._backend.retrieve_session(requested.value)
            except Exception as e:
                logger.warning(
                    "Session retrieval failed, starting a new session",
                    session_id=requested.value,
                    error=str(e),
                )

        if raw_id is None:
            try:
                raw_id = await self._backend.create_session()
            except Exception as e:
                raise ThreadOperationFailed(
                    f"Failed to create session: {e}",
                    operation="create_session",
                    previous_session_id=requested.value if requested else None,
                ) from e
            SESSIONS_CREATED.inc()
            logger.info("Session created", session_id=raw_id)

        handle = SessionHandle.parse(raw_id, pattern)
        if handle is None:
            raise InvalidSessionHandle(
                f"Session service returned an invalid session id: {raw_id!r}",
                session_id=raw_id,
            )
        return handle

    async def _start_run(self, handle: SessionHandle, content: str) -> Run:
        instructions = None
        if isinstance(self._settings.persona, InjectedSystemMessage):
            instructions = self._settings.persona.text

        try:
            await self._backend.append_user_message(handle.value, content)
        except Exception as e:
            raise RunOperationFailed(
                f"Failed to add message to session {handle.value}: {e}",
                operation="append_user_message",
                session_id=handle.value,
            ) from e

        try:
            run = await self._backend.start_run(
                handle.value,
                assistant_id=self._settings.assistant_id,
                instructions=instructions,
                model=self._settings.model,
            )
        except Exception as e:
            raise RunOperationFailed(
                f"Failed to start run in session {handle.value}: {e}",
                operation="start_run",
                session_id=handle.value,
            ) from e

        logger.debug("Run started", session_id=handle.value, run_id=run.id, status=run.status.value)
        return run

    async def _wait(self, run: Run) -> Run:
        try:
            return await wait_for_run(
                self._backend,
                run,
                interval=self._settings.poll_interval_seconds,
                max_attempts=self._settings.max_poll_attempts,
                timeout=self._settings.poll_timeout_seconds,
                sleep=self._sleep,
            )
        except asyncio.CancelledError:
            logger.info("Generation cancelled, cancelling remote run", run_id=run.id)
            await self._cancel_run(run)
            raise
        except RunTimeout:
            RUNS_TOTAL.labels(status="timeout").inc()
            await self._cancel_run(run)
            raise

    async def _cancel_run(self, run: Run) -> None:
        """Best-effort remote cancel. Failures are logged, not raised."""
        try:
            await self._backend.cancel_run(run.session_id, run.id)
        except Exception as e:
            logger.warning("Failed to cancel run", run_id=run.id, error=str(e))

    async def _extract_reply(self, handle: SessionHandle, run: Run) -> str:
        """First text block of the newest assistant message."""
        try:
            recent = await self._backend.list_recent_messages(
                handle.value,
                limit=self._settings.recent_messages_limit,
            )
        except Exception as e:
            raise RunOperationFailed(
                f"Failed to list messages of session {handle.value}: {e}",
                operation="list_recent_messages",
                session_id=handle.value,
                run_id=run.id,
            ) from e

        # Newest first; the submitted user turn bounds this run's output
        for message in recent:
            if message.role != Role.ASSISTANT.value:
                break
            if message.run_id is not None and message.run_id != run.id:
                continue
            if message.text_blocks:
                return message.text_blocks[0]
            break

        logger.warning(
            "Run completed without text content",
            kind="NO_TEXT_CONTENT",
            session_id=handle.value,
            run_id=run.id,
        )
        return self._settings.empty_reply_text


__all__ = ["ResponseGenerator", "latest_user_content"]
