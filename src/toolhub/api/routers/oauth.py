"""OAuth callback router."""

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, PlainTextResponse
import structlog

from toolhub.components import HubComponents
from toolhub.exceptions import HubError
from toolhub.oauth import render_success_page

from ..dependencies import get_components

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/oauth", tags=["oauth"])


@router.get("/callback")
async def oauth_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    components: HubComponents = Depends(get_components),
):
    """Provider redirect target: HTML on success, plain-text error otherwise."""
    try:
        result = await components.oauth.handle_callback(code, state, error)
    except HubError as e:
        logger.info("oauth_callback_rejected", error_type=type(e).__name__)
        return PlainTextResponse(e.user_message, status_code=e.http_status)
    return HTMLResponse(render_success_page(result.service))
