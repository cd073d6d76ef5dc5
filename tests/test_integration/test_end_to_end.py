"""End-to-end tests: local proxy app in front of a fake preview service."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route
from starlette.testclient import TestClient

from edge_preview.config import DevConfig, HttpClientSettings
from edge_preview.dev import build_preview_id
from edge_preview.models import RequestRecord
from edge_preview.proxy.server import create_app

SCRIPT_ID = "script"
SESSION_ID = "0123456789abcdef0123456789abcdef"

# ---------- Fake preview service ----------


def _worker_response(status: str, headers: list[tuple[str, str]], body: bytes = b"") -> Response:
    """Wrap a worker response the way the preview service does."""
    response = Response(content=body)
    response.raw_headers = [(b"cf-ew-status", status.encode("latin-1"))]
    response.raw_headers += [
        (f"cf-ew-raw-{name}".encode("latin-1"), value.encode("latin-1")) for name, value in headers
    ]
    response.raw_headers.append((b"x-preview-internal", b"1"))
    response.raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))
    return response


async def _preview(request: Request) -> Response:
    if request.headers.get("cf-ew-preview") != build_preview_id(
        SCRIPT_ID, SESSION_ID, DevConfig().upstream_host
    ):
        return Response("unknown preview", status_code=404)

    # What the worker would see
    worker_headers = {
        name[len("cf-ew-raw-") :]: value
        for name, value in request.headers.items()
        if name.startswith("cf-ew-raw-")
    }
    path = request.url.path

    if path == "/echo":
        body = json.dumps(
            {
                "method": request.method,
                "query": request.url.query,
                "headers": worker_headers,
                "body": (await request.body()).decode("utf-8"),
            }
        ).encode("utf-8")
        return _worker_response("200 OK", [("content-type", "application/json")], body)
    if path == "/moved":
        return _worker_response(
            "301 Moved Permanently", [("location", "https://example.com/new?from=moved")]
        )
    if path == "/away":
        return _worker_response("302 Found", [("location", "https://elsewhere.dev/")])
    if path == "/cookies":
        return _worker_response(
            "200 OK", [("set-cookie", "session=1; Path=/"), ("set-cookie", "theme=dark")], b"ok"
        )
    return _worker_response("404 Not Found", [("content-type", "text/plain")], b"no route")


preview_service = Starlette(routes=[Route("/{path:path}", _preview, methods=["GET", "POST"])])


@pytest.fixture
def records() -> list[RequestRecord]:
    return []


@pytest.fixture
def client(config: DevConfig, records: list[RequestRecord]) -> Any:
    async def capture(record: RequestRecord) -> None:
        records.append(record)

    app = create_app(
        config,
        build_preview_id(SCRIPT_ID, SESSION_ID, config.upstream_host),
        HttpClientSettings.from_config(config),
        on_request=capture,
        transport=httpx.ASGITransport(app=preview_service),
    )
    with TestClient(app) as test_client:
        yield test_client


class TestEndToEnd:
    def test_worker_sees_original_request(self, client: TestClient) -> None:
        response = client.post("/echo?a=1", content=b"hello", headers={"x-trace": "t1"})
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        seen = response.json()
        assert seen["method"] == "POST"
        assert seen["query"] == "a=1"
        assert seen["body"] == "hello"
        assert seen["headers"]["x-trace"] == "t1"

    def test_service_headers_are_hidden(self, client: TestClient) -> None:
        response = client.get("/echo")
        assert "x-preview-internal" not in response.headers
        assert "cf-ew-status" not in response.headers

    def test_self_redirect_points_at_listener(self, client: TestClient) -> None:
        response = client.get("/moved", follow_redirects=False)
        assert response.status_code == 301
        assert response.headers["location"] == "https://127.0.0.1:8787/new?from=moved"

    def test_foreign_redirect_untouched(self, client: TestClient) -> None:
        response = client.get("/away", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "https://elsewhere.dev/"

    def test_cookies_are_not_merged(self, client: TestClient) -> None:
        response = client.get("/cookies")
        assert response.headers.get_list("set-cookie") == ["session=1; Path=/", "theme=dark"]

    def test_worker_status_is_returned(
        self, client: TestClient, records: list[RequestRecord]
    ) -> None:
        response = client.get("/nowhere")
        assert response.status_code == 404
        assert response.text == "no route"
        assert records[-1].status_code == 404
        assert records[-1].path == "/nowhere"
