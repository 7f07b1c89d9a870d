"""FastAPI dependencies."""

from fastapi import Request
from fastapi.responses import JSONResponse

from toolhub.components import HubComponents


def get_components(request: Request) -> HubComponents:
    """Hub object graph created in the app lifespan."""
    return request.app.state.components


def error_response(message: str, status_code: int) -> JSONResponse:
    """``{"error": message}`` body; never carries internal details."""
    return JSONResponse({"error": message}, status_code=status_code)
