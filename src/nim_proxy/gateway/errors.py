from __future__ import annotations

from typing import Any

from fastapi import HTTPException


class GatewayError(HTTPException):
    def __init__(
        self,
        status_code: int,
        err_type: str,
        message: str,
        code: Any = None,
        details: str | None = None,
    ):
        payload: dict[str, Any] = {"error": {"message": message, "type": err_type}}
        if code is not None:
            payload["error"]["code"] = code
        if details is not None:
            payload["error"]["details"] = details
        super().__init__(status_code=status_code, detail=payload)


def err_missing_api_key() -> GatewayError:
    return GatewayError(
        401, "invalid_request_error", "No API key provided", code="invalid_api_key"
    )


def err_invalid_messages(
    message: str = "Messages must be provided as an array",
) -> GatewayError:
    return GatewayError(400, "invalid_request_error", message)


def err_invalid_body(reason: str) -> GatewayError:
    return GatewayError(400, "invalid_request_error", f"Invalid request body: {reason}")


def err_payload_too_large(limit: int) -> GatewayError:
    return GatewayError(
        413, "payload_too_large", f"Request body exceeds limit {limit} bytes"
    )


def err_upstream(status_code: int, body: Any) -> GatewayError:
    """Map an upstream error response onto the gateway's error shape."""
    upstream = body.get("error") if isinstance(body, dict) else None
    if not isinstance(upstream, dict):
        upstream = {}
    return GatewayError(
        status_code,
        upstream.get("type") or "api_error",
        upstream.get("message") or f"Request failed with status code {status_code}",
        code=upstream.get("code") or "unknown_error",
    )


def err_proxy_failure(details: str) -> GatewayError:
    return GatewayError(500, "internal_error", "Proxy server error", details=details)


def err_models_unavailable() -> GatewayError:
    return GatewayError(500, "api_error", "Failed to fetch models")
