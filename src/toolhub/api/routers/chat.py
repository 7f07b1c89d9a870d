"""Chat router."""

from fastapi import APIRouter, Depends, status
import structlog

from toolhub.components import HubComponents

from ..dependencies import error_response, get_components
from ..schemas import ChatRequest, ChatResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/llm", tags=["chat"])

DEFAULT_THREAD_ID = "main"
ANONYMOUS_USER_ID = "anonymous"


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    components: HubComponents = Depends(get_components),
):
    """Answer a message with the user's tools, keeping per-thread history."""
    if not body.message:
        return error_response("Message is required", status.HTTP_400_BAD_REQUEST)

    thread_id = body.thread_id or DEFAULT_THREAD_ID
    try:
        reply = await components.actions.respond(
            body.user_id or ANONYMOUS_USER_ID, thread_id, body.message
        )
    except Exception as e:
        logger.error("chat_failed", thread_id=thread_id, error=str(e), error_type=type(e).__name__)
        return error_response(
            "Failed to process chat message", status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    return ChatResponse(reply=reply, thread_id=thread_id, user_id=body.user_id)
