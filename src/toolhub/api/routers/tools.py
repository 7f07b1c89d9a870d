"""Tool catalog router."""

from fastapi import APIRouter, Depends, status
import structlog

from toolhub.components import HubComponents

from ..dependencies import error_response, get_components

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/mcp/tools", tags=["tools"])


@router.get("", response_model=list[str])
async def list_tools(
    id: str | None = None,
    components: HubComponents = Depends(get_components),
):
    """Names of every tool reachable by the user."""
    if not id:
        return error_response("User ID is required", status.HTTP_400_BAD_REQUEST)
    try:
        return await components.hub.list_tools(id, components.passphrase)
    except Exception as e:
        logger.error("tool_list_failed", user_id=id, error=str(e))
        return error_response("Failed to list tools", status.HTTP_500_INTERNAL_SERVER_ERROR)
