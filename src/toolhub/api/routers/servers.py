"""Server registry router."""

from fastapi import APIRouter, Depends, status
import structlog

from toolhub.components import HubComponents
from toolhub.credentials import Present

from ..dependencies import error_response, get_components
from ..schemas import MessageResponse, ServerCreate, ServerDelete, ServerInfo

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/mcp/servers", tags=["servers"])


@router.get("", response_model=list[ServerInfo])
async def list_servers(
    id: str | None = None,
    components: HubComponents = Depends(get_components),
):
    """All registered servers with the user's access status."""
    if not id:
        return error_response(
            "User ID is required to check access to servers", status.HTTP_400_BAD_REQUEST
        )

    hub, passphrase = components.hub, components.passphrase
    try:
        servers = await hub.list_servers()
    except Exception as e:
        logger.error("server_list_failed", error=str(e))
        return error_response("Failed to list servers", status.HTTP_500_INTERNAL_SERVER_ERROR)

    result = []
    for name, url in servers.items():
        try:
            has_access = await hub.user_has_access_to_server(id, name, passphrase)
            credential = await hub.resolve_server_credential(id, name, passphrase)
            has_auth = isinstance(credential, Present)
        except Exception as e:
            logger.warning("server_access_check_failed", server=name, error=str(e))
            has_access = has_auth = False
        result.append(ServerInfo(server=name, url=url, has_access=has_access, has_auth=has_auth))
    return result


@router.post("", response_model=MessageResponse)
async def add_server(
    body: ServerCreate,
    components: HubComponents = Depends(get_components),
):
    """Register a server and, when given, the user's API key for it."""
    if not body.server_name or not body.server_url:
        return error_response("serverName and serverUrl are required", status.HTTP_400_BAD_REQUEST)
    if body.api_key and not body.user_id:
        return error_response("userId is required with apiKey", status.HTTP_400_BAD_REQUEST)
    if body.api_key and not components.passphrase:
        logger.error("encryption_key_missing")
        return error_response(
            "Encryption key not configured", status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    try:
        await components.hub.add_server(body.server_name, body.server_url)
        if body.api_key:
            await components.hub.add_user_api_key(
                body.user_id, body.server_name, body.api_key, components.passphrase
            )
    except Exception as e:
        logger.error("server_save_failed", server=body.server_name, error=str(e))
        return error_response(
            "Failed to save server configuration", status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    return MessageResponse(message=f"{body.server_name} server configuration saved")


@router.delete("", response_model=MessageResponse)
async def delete_server(
    body: ServerDelete,
    components: HubComponents = Depends(get_components),
):
    if not body.server_name:
        return error_response("serverName is required", status.HTTP_400_BAD_REQUEST)
    try:
        await components.hub.remove_server(body.server_name)
    except Exception as e:
        logger.error("server_delete_failed", server=body.server_name, error=str(e))
        return error_response(
            "Failed to delete server configuration", status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    return MessageResponse(message=f"{body.server_name} server configuration deleted")
