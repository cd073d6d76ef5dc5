"""Starlette application assembly and lifecycle."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from edge_preview.config import DevConfig, HttpClientSettings
from edge_preview.proxy.handler import ProxyHandler

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]


def build_http_client(
    settings: HttpClientSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the upstream client from the process-wide HTTP settings."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.timeout, connect=settings.connect_timeout),
        # The body is relayed raw, so the preview service must not compress it
        headers={"User-Agent": settings.user_agent, "Accept-Encoding": "identity"},
        transport=transport,
    )


def create_app(
    config: DevConfig,
    preview_id: str,
    http_settings: HttpClientSettings,
    on_request: Any | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Starlette:
    """Create the Starlette app that proxies every request to the preview service."""

    handler: ProxyHandler | None = None
    client: httpx.AsyncClient | None = None

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        nonlocal handler, client
        client = build_http_client(http_settings, transport)
        handler = ProxyHandler(
            config=config,
            preview_id=preview_id,
            http_client=client,
            on_request=on_request,
        )
        yield
        if client:
            await client.aclose()

    async def proxy_catchall(request: Request) -> Response:
        """Catch-all handler that forwards requests to the worker."""
        assert handler is not None, "App not initialized"
        return await handler.handle(request)

    routes = [
        Route("/", proxy_catchall, methods=PROXY_METHODS),
        Route("/{path:path}", proxy_catchall, methods=PROXY_METHODS),
    ]

    return Starlette(routes=routes, lifespan=lifespan)
