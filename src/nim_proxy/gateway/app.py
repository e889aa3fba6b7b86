from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import parse_qsl

import httpx
from fastapi import APIRouter, BackgroundTasks, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response, StreamingResponse

from .. import __version__
from .config import GatewayConfig
from .errors import (
    GatewayError,
    err_invalid_body,
    err_payload_too_large,
    err_proxy_failure,
)
from .forwarder import UpstreamForwarder, UpstreamReply
from .landing import render_landing_page
from .logging_utils import JsonlLogger
from .metrics import GatewayStats
from .models import CHAT_ERROR_RESPONSES, MODELS_ERROR_RESPONSES, HealthResponse
from .normalization import bearer_token, normalize_chat_request, resolve_api_key

logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)

router = APIRouter()

_FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"


def _error_response(exc: GatewayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.detail)


def _reply_response(reply: UpstreamReply) -> Response:
    if reply.stream is not None:
        background = BackgroundTasks()
        if reply.close is not None:
            background.add_task(reply.close)
        return StreamingResponse(
            reply.stream, media_type=reply.media_type, background=background
        )
    return Response(
        content=reply.content,
        status_code=reply.status_code,
        media_type=reply.media_type,
    )


def _parse_form(raw: bytes) -> dict[str, Any]:
    data: dict[str, Any] = dict(
        parse_qsl(raw.decode("utf-8", errors="replace"), keep_blank_values=True)
    )
    # Flat form fields cannot carry an array; accept a JSON-encoded one.
    messages = data.get("messages")
    if isinstance(messages, str):
        try:
            data["messages"] = json.loads(messages)
        except ValueError:
            logger.warning("[app] Form field 'messages' is not valid JSON")
    return data


async def _read_payload(req: Request) -> Any:
    raw = await req.body()
    if req.headers.get("content-type", "").startswith(_FORM_MEDIA_TYPE):
        return _parse_form(raw)
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise err_invalid_body(str(exc)) from exc


def _log_request(req: Request, record: dict[str, Any]) -> None:
    request_log: JsonlLogger | None = req.app.state.request_log
    if request_log is None:
        return
    request_log.log(
        {"ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime()), **record}
    )


@router.get("/", response_class=HTMLResponse)
async def landing(req: Request):
    cfg: GatewayConfig = req.app.state.cfg
    return HTMLResponse(
        render_landing_page(
            base_url=str(req.base_url).rstrip("/") + "/v1",
            total_requests=req.app.state.stats.total_requests,
            default_model=cfg.default_model,
        )
    )


@router.get("/health", response_model=HealthResponse)
async def health(req: Request):
    return req.app.state.stats.snapshot()


@router.post("/v1/chat/completions", responses=CHAT_ERROR_RESPONSES)
async def chat_completions(req: Request):
    cfg: GatewayConfig = req.app.state.cfg
    forwarder: UpstreamForwarder = req.app.state.forwarder
    # Counted before validation so rejected requests are included.
    req.app.state.stats.record_request()
    started = time.perf_counter()
    logger.info("[app] Received chat completion request")

    record: dict[str, Any] = {"model": None, "stream": False}
    try:
        api_key = resolve_api_key(
            req.headers.get("authorization"), cfg.default_api_key
        )
        normalized = normalize_chat_request(await _read_payload(req), api_key, cfg)
        logger.info(
            "[app] Cleaned %d of %d messages",
            len(normalized.payload["messages"]),
            normalized.received_messages,
        )
        record.update(
            model=normalized.model,
            stream=normalized.stream,
            messages_in=normalized.received_messages,
            messages_out=len(normalized.payload["messages"]),
        )
        reply = await forwarder.forward_chat(normalized)
    except GatewayError as exc:
        if exc.status_code < 500:
            logger.warning("[app] Rejected request: %s", exc.detail["error"])
        record.update(status=exc.status_code)
        return _error_response(exc)
    except Exception as exc:  # noqa: BLE001
        logger.exception("[app] Unexpected error while proxying chat completion")
        record.update(status=500)
        return _error_response(err_proxy_failure(str(exc) or type(exc).__name__))
    else:
        record["status"] = reply.status_code
    finally:
        record["duration_ms"] = round((time.perf_counter() - started) * 1000, 1)
        _log_request(req, record)

    return _reply_response(reply)


@router.get("/v1/models", responses=MODELS_ERROR_RESPONSES)
async def list_models_api(req: Request):
    cfg: GatewayConfig = req.app.state.cfg
    forwarder: UpstreamForwarder = req.app.state.forwarder
    # Same credential rule as chat, but a missing key is left to the upstream.
    api_key = bearer_token(req.headers.get("authorization")) or cfg.default_api_key
    try:
        reply = await forwarder.list_models(api_key)
    except GatewayError as exc:
        return _error_response(exc)
    return _reply_response(reply)


def create_app(
    cfg: GatewayConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the gateway app with its own stats, forwarder and request log."""
    cfg = cfg or GatewayConfig.load()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "[app] NIM proxy ready (upstream %s, default model %s)",
            cfg.base_url,
            cfg.default_model,
        )
        yield
        await app.state.forwarder.aclose()

    app = FastAPI(title="NIM Proxy", version=__version__, lifespan=lifespan)
    app.state.cfg = cfg
    app.state.stats = GatewayStats()
    app.state.forwarder = UpstreamForwarder(cfg, transport=transport)
    app.state.request_log = (
        JsonlLogger(cfg.request_log_path, cfg.max_log_bytes)
        if cfg.request_log_path
        else None
    )

    @app.middleware("http")
    async def limit_body_size(req: Request, call_next):
        length = req.headers.get("content-length")
        if length and length.isdigit() and int(length) > cfg.max_body_bytes:
            return _error_response(err_payload_too_large(cfg.max_body_bytes))
        return await call_next(req)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


def main():  # pragma: no cover
    import uvicorn

    cfg = GatewayConfig.load()
    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port)


if __name__ == "__main__":  # pragma: no cover
    main()
