"""Session client: owns the transcript, the held session id and recovery policy."""

import asyncio
from collections.abc import Callable
from typing import Literal

import structlog
from pydantic import BaseModel

from persona_chat.config import SessionSettings
from persona_chat.core.conversation.errors import ChatError, ErrorKind, classify
from persona_chat.core.conversation.generator import ResponseGenerator
from persona_chat.core.conversation.models import ConversationLog, Message, Role, SessionHandle
from persona_chat.infrastructure.storage.session_store import SessionStore

logger = structlog.get_logger(__name__)

STOPPED_TEXT = "Response stopped."


class Notification(BaseModel):
    """Transient user-facing notice (a toast in a UI)."""

    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


NotifyFn = Callable[[Notification], None]


def _log_notification(notification: Notification) -> None:
    logger.info("Notification", title=notification.title, description=notification.description)


class SessionClient:
    """Drives one conversation from the presentation side.

    State per submission: idle -> submitting -> idle. A submission made
    while another is in flight is ignored.
    """

    def __init__(
        self,
        generator: ResponseGenerator,
        store: SessionStore,
        settings: SessionSettings,
        notify: NotifyFn | None = None,
    ) -> None:
        self._generator = generator
        self._store = store
        self._settings = settings
        self._notify = notify or _log_notification

        self._log = ConversationLog()
        self._session_id: SessionHandle | None = None
        self._busy = False
        self._last_error: ChatError | None = None
        self._task: asyncio.Task | None = None
        self._stop_requested = False
        self._in_flight = False

        self.input = ""
        self.last_completed_assistant_message: Message | None = None

    @property
    def log(self) -> ConversationLog:
        return self._log

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def last_error(self) -> ChatError | None:
        return self._last_error

    @property
    def session_id(self) -> SessionHandle | None:
        return self._session_id

    async def load(self) -> SessionHandle | None:
        """Restore the held session id from the store.

        Malformed stored values are treated as absent and removed.
        """
        raw = await self._store.get(self._settings.storage_key)
        handle = SessionHandle.parse(raw, self._generator.session_id_pattern)
        if raw is not None and handle is None:
            logger.warning("Discarding malformed stored session id", session_id=raw)
            await self._store.delete(self._settings.storage_key)
        self._session_id = handle
        return handle

    async def submit(self, user_text: str | None = None) -> Message | None:
        """Send one user turn and append the outcome to the log.

        Args:
            user_text: Text to send. Defaults to the input buffer.

        Returns:
            The assistant message appended for this turn (reply, error
            summary or stop note), or None when nothing was appended.
        """
        text = (self.input if user_text is None else user_text).strip()
        if not text:
            return None
        if self._in_flight:
            logger.warning("Submission ignored, a request is already in flight")
            return None

        self._in_flight = True

        # Optimistic update: the user turn is visible before any remote call.
        was_empty = len(self._log) == 0
        self._log.append(Message(role=Role.USER, content=text))
        self.input = ""
        self._busy = True
        self._last_error = None
        self.last_completed_assistant_message = None

        try:
            if was_empty and self._session_id is not None and not self._settings.resume_on_empty_transcript:
                logger.info(
                    "Starting a fresh session for an empty transcript",
                    discarded_session_id=self._session_id.value,
                )
                await self._set_session(None)

            if self._stop_requested:
                logger.info("Submission stopped by user before generation")
                return self._append_assistant(STOPPED_TEXT)

            session_id = self._session_id.value if self._session_id else None
            self._task = asyncio.create_task(self._generator.generate(list(self._log), session_id))
            try:
                result = await self._task
            except asyncio.CancelledError:
                if not self._stop_requested:
                    raise
                logger.info("Submission stopped by user")
                return self._append_assistant(STOPPED_TEXT)
            except Exception as e:
                return await self._handle_failure(e)

            reply: Message | None = None
            if result.text:
                reply = self._append_assistant(result.text)
                self.last_completed_assistant_message = reply

            if result.session_id:
                handle = SessionHandle.parse(result.session_id, self._generator.session_id_pattern)
                if handle is not None:
                    await self._set_session(handle)

            return reply
        finally:
            self._busy = False
            self._task = None
            self._stop_requested = False
            self._in_flight = False

    def stop(self) -> None:
        """Leave the busy state.

        When ``cancel_remote_on_stop`` is set, the in-flight generation is
        cancelled, which cancels the remote run as well. Otherwise the remote
        run keeps going and its reply is still appended when it arrives.
        """
        if not self._busy:
            return
        self._busy = False
        if not self._settings.cancel_remote_on_stop:
            return
        if self._task is None:
            # Generation not started yet; submit checks the flag before starting it
            self._stop_requested = True
        elif not self._task.done():
            self._stop_requested = True
            self._task.cancel()

    async def reset(self) -> None:
        """Forget the transcript and the held session id."""
        if self._in_flight:
            raise RuntimeError("Cannot reset while a request is in flight")
        self._log = ConversationLog()
        self._last_error = None
        self.last_completed_assistant_message = None
        await self._set_session(None)

    async def _handle_failure(self, exc: Exception) -> Message:
        error = classify(exc)
        self._last_error = error

        if error.kind is ErrorKind.UNKNOWN:
            logger.error("Unexpected chat failure", error=str(exc), exc_info=exc)
        else:
            logger.warning("Chat request failed", kind=error.kind.value, error=str(error))

        if error.kind.drops_session and self._session_id is not None:
            logger.warning(
                "Clearing session id due to error",
                kind=error.kind.value,
                session_id=self._session_id.value,
            )
            await self._set_session(None)

        summary = f"Chat Error: {error.user_message}"
        self._notify(Notification(title="Chat Error", description=summary, variant="destructive"))
        return self._append_assistant(summary)

    def _append_assistant(self, content: str) -> Message:
        return self._log.append(Message(role=Role.ASSISTANT, content=content))

    async def _set_session(self, handle: SessionHandle | None) -> None:
        """Update the held id and mirror it to the store."""
        if handle == self._session_id:
            return
        self._session_id = handle
        key = self._settings.storage_key
        try:
            if handle is None:
                await self._store.delete(key)
            else:
                await self._store.set(key, handle.value)
        except Exception as e:
            # The in-memory id stays authoritative for this process
            logger.error("Failed to persist session id", key=key, error=str(e))
