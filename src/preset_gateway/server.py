"""
Preset Gateway Server — FastAPI-based forwarding gateway.

Sits in front of one chat-completion API, checks client keys, answers
matching requests from presets and relays everything else upstream.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .admin import create_admin_router
from .config import GatewayConfig
from .errors import GatewayError
from .forwarder import ProxyForwarder
from .keys import KeyStore
from .persistence import JsonFileStore, Store
from .pipeline import RequestPipeline
from .presets import PresetMatcher
from .stats import StatsAggregator

logger = logging.getLogger(__name__)


@dataclass
class Stores:
    stats: Store
    presets: Store
    keys: Store

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "Stores":
        return cls(
            stats=JsonFileStore(config.stats_path),
            presets=JsonFileStore(config.presets_path),
            keys=JsonFileStore(config.keys_path),
        )


def create_app(
    config: GatewayConfig,
    stores: Optional[Stores] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create the gateway FastAPI app.

    Args:
        config: Gateway configuration.
        stores: Persistence for stats, presets and keys. Defaults to JSON
            files under ``config.data_dir``.
        transport: Optional httpx transport for the upstream client.
    """
    stores = stores or Stores.from_config(config)

    stats = StatsAggregator(stores.stats, save_delay=config.stats_save_delay)
    presets = PresetMatcher(stores.presets)
    keys = KeyStore(stores.keys)

    stats.load()
    presets.load()
    keys.load(seed_secrets=config.client_keys)

    client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.upstream_timeout),
        transport=transport,
    )
    forwarder = ProxyForwarder(client, config.target_url, config.upstream_api_key)
    pipeline = RequestPipeline(keys, presets, stats, forwarder)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Forwarding all requests to %s", config.target_url)
        yield
        await client.aclose()
        await stats.writer.drain()
        stats.flush()
        logger.info("Gateway stopped, stats flushed")

    app = FastAPI(
        title="Preset Gateway",
        description="Forwarding gateway with client keys and preset replies",
        version=__version__,
        lifespan=lifespan,
        # Every unknown path belongs to the upstream, docs included
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.pipeline = pipeline

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=exc.headers)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "target": config.target_url,
            "presets": len(presets),
            "keys": keys.summary(),
            "stats": stats.summary(),
        }

    app.include_router(
        create_admin_router(keys, presets, stats, config.admin_user, config.admin_password)
    )

    @app.post("/v1/messages")
    async def messages(request: Request):
        return await pipeline.handle_messages(request)

    @app.api_route(
        "/{path:path}",
        methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"],
    )
    async def proxy(request: Request, path: str):
        """Relay every other request to the upstream API as-is."""
        return await pipeline.handle_passthrough(request)

    return app
