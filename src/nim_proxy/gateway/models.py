from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorInfo(BaseModel):
    message: str
    type: str
    code: Optional[Any] = None
    details: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorInfo


class HealthResponse(BaseModel):
    status: str = "healthy"
    totalRequests: int = Field(..., ge=0)
    uptime: float = Field(..., description="Seconds since the app was created.")


CHAT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Malformed request"},
    401: {"model": ErrorResponse, "description": "No API key resolvable"},
    413: {"model": ErrorResponse, "description": "Request body too large"},
    500: {"model": ErrorResponse, "description": "Transport or proxy failure"},
}

MODELS_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    500: {"model": ErrorResponse, "description": "Model listing failed"},
}
