"""
Request pipeline for Preset Gateway.

Fixed order for chat requests: client key check, preset match, then either
a synthetic reply or an upstream forward. Every outcome is counted once.
"""

import json
import logging
from typing import Any, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from .errors import AuthenticationError, AuthorizationError, UpstreamError
from .forwarder import ProxyForwarder
from .keys import KeyStore, mask_secret
from .messages import ChatRequest
from .presets import PresetMatcher
from .responses import build_single, build_stream
from .stats import StatsAggregator

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache"}


def presented_key(request: Request) -> Optional[str]:
    """Client key from ``x-api-key`` or ``Authorization: Bearer``."""
    key = request.headers.get("x-api-key")
    if key:
        return key.strip()
    auth = request.headers.get("authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def is_json_content_type(content_type: Optional[str]) -> bool:
    media_type = (content_type or "").split(";")[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


def parse_json(body: bytes, content_type: Optional[str]) -> Any:
    """Decode a body sent as JSON, or None if it isn't one."""
    if not body or not is_json_content_type(content_type):
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


class RequestPipeline:
    """Wires key store, presets, response builder, forwarder and stats."""

    def __init__(
        self,
        keys: KeyStore,
        presets: PresetMatcher,
        stats: StatsAggregator,
        forwarder: ProxyForwarder,
    ):
        self.keys = keys
        self.presets = presets
        self.stats = stats
        self.forwarder = forwarder

    async def handle_messages(self, request: Request) -> Response:
        """POST /v1/messages."""
        endpoint = request.url.path
        body = await request.body()

        secret = presented_key(request)
        if secret is None:
            self.stats.record(endpoint, False)
            raise AuthenticationError("Missing API key")

        record = self.keys.validate(secret)
        if record is None:
            logger.warning("Rejected key %s", mask_secret(secret))
            self.stats.record(endpoint, False)
            raise AuthorizationError("Invalid or disabled API key")

        parsed = parse_json(body, request.headers.get("content-type"))
        chat = ChatRequest.from_body(parsed)
        preset = self.presets.match(chat.latest_user_text())

        if preset is not None:
            logger.info("[PRESET] answering from preset for key %s", record.id)
            self.stats.record(endpoint, True, record.id, tokens=len(preset))
            if chat.stream:
                return StreamingResponse(
                    iter(build_stream(preset)),
                    media_type="text/event-stream",
                    headers=SSE_HEADERS,
                )
            return JSONResponse(build_single(preset))

        return await self._forward(request, body, parsed, key_id=record.id)

    async def handle_passthrough(self, request: Request) -> Response:
        """Any other path or method: forward without a key check."""
        body = await request.body()
        return await self._forward(request, body, parse_json(body, request.headers.get("content-type")))

    async def _forward(
        self,
        request: Request,
        body: bytes,
        parsed: Any,
        key_id: Optional[str] = None,
    ) -> Response:
        endpoint = request.url.path

        def on_complete(success: bool) -> None:
            self.stats.record(endpoint, success, key_id)

        try:
            return await self.forwarder.forward(request, body, parsed, on_complete)
        except UpstreamError:
            self.stats.record(endpoint, False, key_id)
            raise
