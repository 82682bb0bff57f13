"""OpenAI Assistants (threads + runs) backend."""

from typing import Any

import structlog
from openai import AsyncOpenAI

from persona_chat.infrastructure.assistants.base import AssistantBackend, RemoteMessage, Run, RunStatus

logger = structlog.get_logger(__name__)


class OpenAIAssistantsBackend(AssistantBackend):
    """Backend over the OpenAI beta threads API."""

    def __init__(
        self,
        api_key: str,
        timeout: float = 60.0,
        max_retries: int = 2,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
            base_url=base_url,
        )

    @property
    def name(self) -> str:
        return "openai"

    async def create_session(self) -> str:
        thread = await self._client.beta.threads.create()
        return thread.id

    async def retrieve_session(self, session_id: str) -> str:
        thread = await self._client.beta.threads.retrieve(session_id)
        return thread.id

    async def append_user_message(self, session_id: str, content: str) -> str:
        message = await self._client.beta.threads.messages.create(
            thread_id=session_id,
            role="user",
            content=content,
        )
        return message.id

    async def start_run(
        self,
        session_id: str,
        assistant_id: str,
        instructions: str | None = None,
        model: str | None = None,
    ) -> Run:
        request_kwargs: dict[str, Any] = {
            "thread_id": session_id,
            "assistant_id": assistant_id,
        }

        if instructions:
            request_kwargs["instructions"] = instructions

        if model:
            request_kwargs["model"] = model

        run = await self._client.beta.threads.runs.create(**request_kwargs)
        return self._convert_run(run, session_id)

    async def get_run(self, session_id: str, run_id: str) -> Run:
        run = await self._client.beta.threads.runs.retrieve(run_id=run_id, thread_id=session_id)
        return self._convert_run(run, session_id)

    async def list_recent_messages(self, session_id: str, limit: int = 10) -> list[RemoteMessage]:
        page = await self._client.beta.threads.messages.list(
            thread_id=session_id,
            order="desc",
            limit=limit,
        )

        messages: list[RemoteMessage] = []
        for msg in page.data:
            text_blocks = [
                block.text.value
                for block in msg.content
                if block.type == "text" and block.text.value
            ]
            messages.append(
                RemoteMessage(
                    id=msg.id,
                    role=msg.role,
                    text_blocks=text_blocks,
                    run_id=getattr(msg, "run_id", None),
                )
            )

        return messages

    async def cancel_run(self, session_id: str, run_id: str) -> Run:
        run = await self._client.beta.threads.runs.cancel(run_id=run_id, thread_id=session_id)
        return self._convert_run(run, session_id)

    def _convert_run(self, run: Any, session_id: str) -> Run:
        last_error = run.last_error.model_dump() if getattr(run, "last_error", None) else None
        try:
            status = RunStatus(run.status)
        except ValueError:
            # Unknown statuses are treated as terminal failures
            logger.warning("Unknown run status", run_id=run.id, status=run.status)
            status = RunStatus.FAILED
        return Run(id=run.id, session_id=session_id, status=status, last_error=last_error)
