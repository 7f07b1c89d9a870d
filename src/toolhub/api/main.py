"""Tool hub HTTP API."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
import structlog

from toolhub.components import build_components
from toolhub.config import get_settings
from toolhub.exceptions import HubError
from toolhub.logging_config import bind_request_context, clear_context, setup_logging
from toolhub.storage import RedisKeyValueStore

from . import routers
from .dependencies import error_response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_settings()
    setup_logging(
        service_name=f"{settings.service_name}-api",
        log_format=settings.log_format,
        log_level=settings.log_level,
    )
    kv = RedisKeyValueStore.from_url(settings.redis_url)
    app.state.components = build_components(kv, settings)
    yield
    await kv.close()


app = FastAPI(
    title="Tool Hub API",
    description="Per-user MCP tool access",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def correlation_middleware(request: Request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID", f"req_{uuid.uuid4().hex[:8]}")
    bind_request_context(correlation_id, method=request.method, path=request.url.path)

    start = time.time()
    logger = structlog.get_logger()

    try:
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        if response.status_code >= 500:  # noqa: PLR2004
            logger.error(
                "http_request_failed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
        else:
            logger.info(
                "http_request", status_code=response.status_code, duration_ms=round(duration_ms, 2)
            )

        response.headers["X-Correlation-ID"] = correlation_id
        return response
    except Exception as e:
        logger.error(
            "http_request_exception",
            error=str(e),
            error_type=type(e).__name__,
            duration_ms=round((time.time() - start) * 1000, 2),
            exc_info=True,
        )
        raise
    finally:
        clear_context()


@app.exception_handler(HubError)
async def hub_error_handler(request: Request, exc: HubError):
    return error_response(exc.user_message, exc.http_status)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response("Invalid request", 400)


app.include_router(routers.health.router)
app.include_router(routers.oauth.router)
app.include_router(routers.servers.router)
app.include_router(routers.tools.router)
app.include_router(routers.auth.router)
app.include_router(routers.chat.router)
