"""Chat API routes."""

import structlog
from fastapi import APIRouter
from pydantic import BaseModel, Field

from persona_chat.api.dependencies import GeneratorDep
from persona_chat.core.conversation.models import Role

logger = structlog.get_logger(__name__)
router = APIRouter()


class ChatMessageIn(BaseModel):
    """One entry of the caller's transcript."""

    role: Role
    content: str


class ChatRequest(BaseModel):
    """Request to generate the next assistant reply."""

    messages: list[ChatMessageIn] = Field(default_factory=list)
    session_id: str | None = None


class ChatResponse(BaseModel):
    """Assistant reply and the session id for the next turn."""

    text: str
    session_id: str | None = None


@router.post("/chat", response_model=ChatResponse)
async def generate_chat_response(request: ChatRequest, generator: GeneratorDep) -> ChatResponse:
    """Generate a reply to the newest user message.

    Only the newest user message is sent; the remote session holds the
    earlier turns. Failures return an error body whose ``code`` is the
    error kind, e.g. ``THREAD_OPERATION_FAILED``.
    """
    logger.info(
        "Chat request received",
        message_count=len(request.messages),
        has_session=request.session_id is not None,
    )
    result = await generator.generate(
        [m.model_dump(mode="json") for m in request.messages],
        request.session_id,
    )
    return ChatResponse(text=result.text, session_id=result.session_id)
