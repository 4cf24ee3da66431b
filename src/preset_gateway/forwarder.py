"""
Upstream forwarding for Preset Gateway.

Relays a request to the single configured upstream, swapping in the
gateway's own credential, and streams the upstream response back byte for
byte.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional

import httpx
from fastapi import Request
from fastapi.responses import StreamingResponse

from .errors import UpstreamError

logger = logging.getLogger(__name__)

# Headers that describe one connection or one body framing, not the message
HOP_BY_HOP = {
    "host",
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "content-length",
}

CLIENT_AUTH_HEADERS = {"authorization", "x-api-key"}


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 400


class ProxyForwarder:
    """Forward requests to one upstream origin."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        target_url: str,
        upstream_api_key: Optional[str] = None,
    ):
        self.client = client
        self.target = target_url.rstrip("/")
        self.upstream_api_key = upstream_api_key

    def build_url(self, request: Request) -> str:
        url = f"{self.target}{request.url.path}"
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return url

    def build_headers(self, request: Request) -> Dict[str, str]:
        headers = {k: v for k, v in request.headers.items() if k.lower() not in HOP_BY_HOP}
        if self.upstream_api_key:
            for h in CLIENT_AUTH_HEADERS:
                headers.pop(h, None)
            headers["x-api-key"] = self.upstream_api_key
            headers["authorization"] = f"Bearer {self.upstream_api_key}"
        return headers

    async def forward(
        self,
        request: Request,
        body: bytes,
        parsed: Any = None,
        on_complete: Optional[Callable[[bool], None]] = None,
    ) -> StreamingResponse:
        """
        Send the request upstream and stream the response back.

        Args:
            request: The inbound request (method, path, query, headers).
            body: Raw inbound body.
            parsed: The body already decoded as JSON, if it was.
            on_complete: Called once with the outcome when the response
                body has been fully relayed or the relay broke off.

        Raises:
            UpstreamError: the upstream could not be reached at all.
        """
        url = self.build_url(request)
        headers = self.build_headers(request)

        content = body
        if isinstance(parsed, dict) and parsed:
            content = json.dumps(parsed, ensure_ascii=False).encode()
            headers = {k: v for k, v in headers.items() if k.lower() != "content-type"}
            headers["content-type"] = "application/json"

        logger.info("[REQUEST] %s %s -> %s", request.method, request.url.path, url)

        try:
            upstream = await self.client.send(
                self.client.build_request(
                    method=request.method,
                    url=url,
                    headers=headers,
                    content=content,
                ),
                stream=True,
            )
        except httpx.HTTPError as e:
            logger.error("[PROXY ERROR] %s %s: %s", request.method, request.url.path, e)
            raise UpstreamError(str(e) or e.__class__.__name__)

        logger.info("[RESPONSE] %s %s -> %d", request.method, request.url.path, upstream.status_code)
        ok = is_success(upstream.status_code)

        async def relay():
            completed = False
            try:
                async for chunk in upstream.aiter_raw():
                    yield chunk
                completed = True
            except httpx.HTTPError as e:
                # Headers are already out; the client just sees a cut stream
                logger.error("[PROXY ERROR] stream broken for %s: %s", request.url.path, e)
            finally:
                try:
                    if on_complete is not None:
                        on_complete(ok and completed)
                finally:
                    await upstream.aclose()

        response = StreamingResponse(relay(), status_code=upstream.status_code)
        # multi_items keeps repeated headers such as set-cookie apart
        for k, v in upstream.headers.multi_items():
            if k.lower() not in HOP_BY_HOP:
                response.headers.append(k, v)
        return response
