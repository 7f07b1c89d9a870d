"""Health check router."""

from fastapi import APIRouter, Depends
import structlog

from toolhub.components import HubComponents

from ..dependencies import error_response, get_components

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(components: HubComponents = Depends(get_components)):
    """Liveness plus a round-trip to the key-value store."""
    try:
        await components.registry.list()
    except Exception as e:
        logger.error("health_storage_unreachable", error=str(e))
        return error_response("Storage unavailable", 503)
    return {"status": "ok"}
