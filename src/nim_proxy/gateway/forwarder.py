from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Optional

import httpx

from .config import GatewayConfig
from .errors import (
    GatewayError,
    err_models_unavailable,
    err_proxy_failure,
    err_upstream,
)
from .normalization import NormalizedRequest

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"


@dataclass
class UpstreamReply:
    """Successful upstream response, relayed to the caller without reshaping."""

    status_code: int
    content: bytes = b""
    media_type: str = JSON_MEDIA_TYPE
    stream: Optional[AsyncIterator[bytes]] = None
    # Releases the upstream stream even when relaying never starts.
    close: Optional[Callable[[], Awaitable[None]]] = None


def _describe(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


def _media_type(resp: httpx.Response) -> str:
    return resp.headers.get("content-type") or JSON_MEDIA_TYPE


class UpstreamForwarder:
    """Issues exactly one upstream call per operation; nothing is retried."""

    def __init__(
        self,
        cfg: GatewayConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.cfg = cfg
        self.client = httpx.AsyncClient(
            timeout=cfg.upstream_timeout_s,
            follow_redirects=True,
            transport=transport,
        )

    @staticmethod
    def _headers(api_key: str) -> dict[str, str]:
        headers = {"Content-Type": JSON_MEDIA_TYPE}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    @staticmethod
    def _upstream_error(resp: httpx.Response) -> GatewayError:
        try:
            body = resp.json()
        except ValueError:
            body = None
        logger.error(
            "[forwarder] Upstream returned %s: %s", resp.status_code, resp.text[:500]
        )
        return err_upstream(resp.status_code, body)

    async def forward_chat(self, request: NormalizedRequest) -> UpstreamReply:
        headers = self._headers(request.api_key)
        url = self.cfg.chat_completions_url
        logger.info("[forwarder] Sending to upstream with model: %s", request.model)
        try:
            if request.stream:
                return await self._forward_stream(url, request.payload, headers)
            resp = await self.client.post(url, json=request.payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("[forwarder] Proxy error: %s", _describe(exc))
            raise err_proxy_failure(_describe(exc)) from exc
        if not resp.is_success:
            raise self._upstream_error(resp)
        logger.info("[forwarder] Response from upstream received")
        return UpstreamReply(200, resp.content, _media_type(resp))

    async def _forward_stream(
        self, url: str, payload: dict, headers: dict[str, str]
    ) -> UpstreamReply:
        req = self.client.build_request("POST", url, json=payload, headers=headers)
        resp = await self.client.send(req, stream=True)
        if not resp.is_success:
            try:
                await resp.aread()
            finally:
                await resp.aclose()
            raise self._upstream_error(resp)
        logger.info("[forwarder] Streaming response from upstream")
        return UpstreamReply(
            200, media_type=_media_type(resp), stream=_relay(resp), close=resp.aclose
        )

    async def list_models(self, api_key: str) -> UpstreamReply:
        # Every failure on this path collapses into the same generic error.
        try:
            resp = await self.client.get(
                self.cfg.models_url, headers=self._headers(api_key)
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("[forwarder] Model listing failed: %s", _describe(exc))
            raise err_models_unavailable() from exc
        if not resp.is_success:
            logger.error(
                "[forwarder] Model listing returned status %s", resp.status_code
            )
            raise err_models_unavailable()
        return UpstreamReply(200, resp.content, _media_type(resp))

    async def aclose(self) -> None:
        await self.client.aclose()


async def _relay(resp: httpx.Response) -> AsyncIterator[bytes]:
    # Status is already committed once bytes flow; a broken stream just ends.
    try:
        async for chunk in resp.aiter_bytes():
            yield chunk
    except httpx.HTTPError as exc:
        logger.error("[forwarder] Upstream stream interrupted: %s", _describe(exc))
    finally:
        await resp.aclose()
