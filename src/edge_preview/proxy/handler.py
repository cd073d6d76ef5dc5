"""Core request handler: receive -> tunnel to preview -> untunnel -> respond."""

from __future__ import annotations

import contextlib
import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
from starlette.requests import Request
from starlette.responses import Response, StreamingResponse

from edge_preview.config import DevConfig
from edge_preview.exceptions import ProtocolViolation
from edge_preview.models import RequestRecord
from edge_preview.proxy.headers import (
    HeaderList,
    parse_status,
    strip_response_headers,
    structure_request,
)
from edge_preview.proxy.redirect import format_local_host, rewrite_redirect

# Hop-by-hop headers the local listener manages itself
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)


def _error_response(message: str, status_code: int) -> Response:
    return Response(
        content=json.dumps({"error": message}),
        status_code=status_code,
        media_type="application/json",
    )


class ProxyHandler:
    """Forwards local requests to the preview service running the worker."""

    def __init__(
        self,
        config: DevConfig,
        preview_id: str,
        http_client: httpx.AsyncClient,
        on_request: Any | None = None,
    ) -> None:
        self._config = config
        self._preview_id = preview_id
        self._client = http_client
        self._on_request = on_request
        self._upstream_host = config.upstream_host.hostname
        self._local_host = format_local_host(config.ip, config.port)

    def upstream_url(self, path: str) -> str:
        """Preview service URL for a local path (``/path?query``)."""
        return f"{self._config.upstream_protocol.value}://{self._config.preview_host}{path}"

    async def handle(self, request: Request) -> Response:
        """Handle an incoming request for the worker."""
        path = request.url.path
        if request.url.query:
            path += f"?{request.url.query}"

        record = RequestRecord(
            method=request.method,
            host=self._upstream_host,
            path=path,
            http_version=request.scope.get("http_version", "1.1"),
        )

        raw_body = await request.body()
        forward_headers = structure_request(request.headers, self._preview_id)

        try:
            upstream_request = self._client.build_request(
                method=request.method,
                url=self.upstream_url(path),
                headers=forward_headers,
                content=raw_body if raw_body else None,
            )
            upstream_response = await self._client.send(upstream_request, stream=True)
        except httpx.ConnectError as e:
            record.error = f"Connection error: {e}"
            record.status_code = 502
            await self._finalize(record)
            return _error_response(str(e), 502)
        except httpx.TimeoutException as e:
            record.error = f"Timeout: {e}"
            record.status_code = 504
            await self._finalize(record)
            return _error_response(str(e), 504)

        try:
            status = parse_status(upstream_response.headers)
        except ProtocolViolation as e:
            await upstream_response.aclose()
            record.error = str(e)
            record.status_code = 502
            await self._finalize(record)
            return _error_response(str(e), 502)

        response_headers = self.worker_headers(status, upstream_response.headers)
        record.status_code = status
        await self._finalize(record)

        async def stream_body() -> AsyncIterator[bytes]:
            try:
                if upstream_response.is_stream_consumed:
                    yield upstream_response.content
                    return
                # Raw bytes: the worker's content-encoding header is passed through
                async for chunk in upstream_response.aiter_raw():
                    yield chunk
            finally:
                await upstream_response.aclose()

        response = StreamingResponse(content=stream_body(), status_code=status)
        response.raw_headers = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in response_headers
        ]
        return response

    def worker_headers(self, status: int, headers: httpx.Headers | HeaderList) -> HeaderList:
        """Turn preview-service response headers into what the worker actually sent."""
        stripped = [
            (name, value)
            for name, value in strip_response_headers(headers)
            if name.lower() not in HOP_BY_HOP_HEADERS
        ]
        return rewrite_redirect(status, stripped, self._upstream_host, self._local_host)

    async def _finalize(self, record: RequestRecord) -> None:
        """Notify listeners about a completed request."""
        if self._on_request:
            with contextlib.suppress(Exception):
                await self._on_request(record)
