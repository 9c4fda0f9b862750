"""Student chat endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from tutor.app.core.logging import get_logger
from tutor.app.core.security import TokenClaims
from tutor.app.db.crud import SqlStudentStore
from tutor.app.db.dependencies import SessionDep
from tutor.app.middleware.auth import require_claims
from tutor.app.services.router import ConversationRouter

router = APIRouter()
logger = get_logger(__name__)


class ChatRequest(BaseModel):
    """Chat message sent by the web client."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=8000)
    request_type: Optional[str] = Field(default=None, alias="requestType")


def get_conversation_router(session: SessionDep) -> ConversationRouter:
    """Build a conversation router bound to the request's database session."""
    return ConversationRouter(SqlStudentStore(session))


@router.post("/api/students/chat")
async def student_chat(
    body: ChatRequest,
    claims: TokenClaims = Depends(require_claims),
    conversation: ConversationRouter = Depends(get_conversation_router),
) -> dict:
    """Handle one tutoring chat message.

    The message is routed to the session start, topic study, examples,
    quiz, quiz answer, video or free chat flow. Errors are rendered by
    the application's exception handlers as
    {statusCode, message, waitTime?, messageType: "error"}.
    """
    payload = await conversation.handle(
        user_id=claims.user_id,
        subject_id=claims.subject_id,
        message=body.message,
        request_type=body.request_type,
    )
    return payload.to_response()
