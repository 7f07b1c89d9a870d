"""Per-user API key router."""

from fastapi import APIRouter, Depends, status
import structlog

from toolhub.components import HubComponents

from ..dependencies import error_response, get_components
from ..schemas import ApiKeySubmit, MessageResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/mcp/auth", tags=["auth"])


@router.post("/{user_id}", response_model=MessageResponse)
async def save_api_key(
    user_id: str,
    body: ApiKeySubmit,
    components: HubComponents = Depends(get_components),
):
    """Add or overwrite the user's API key for a server."""
    if not user_id or not body.server_name or not body.api_key:
        return error_response(
            "Missing at least one required field(s): userId, serverName, apiKey",
            status.HTTP_400_BAD_REQUEST,
        )
    try:
        await components.hub.add_user_api_key(
            user_id, body.server_name, body.api_key, components.passphrase
        )
    except Exception as e:
        logger.error("api_key_save_failed", user_id=user_id, server=body.server_name, error=str(e))
        return error_response("Failed to save API key", status.HTTP_500_INTERNAL_SERVER_ERROR)
    return MessageResponse(message="API key saved successfully")
