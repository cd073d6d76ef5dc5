"""Run a dev session: local proxy plus the inspector, until ctrl-c."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
import uuid
from typing import Any

import uvicorn

from edge_preview.config import DevConfig, HttpClientSettings
from edge_preview.display.terminal import TerminalDisplay
from edge_preview.exceptions import BindError, SessionClosed
from edge_preview.inspector.session import InspectorSession
from edge_preview.inspector.shutdown import ShutdownHandler
from edge_preview.models import UpstreamHost
from edge_preview.proxy.redirect import format_local_host
from edge_preview.proxy.server import create_app
from edge_preview.proxy.tls import ensure_dev_certificate

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return uuid.uuid4().hex


def build_preview_id(script_id: str, session_id: str, host: UpstreamHost) -> str:
    """Routing key the preview service uses to find the uploaded worker."""
    https_flag = "1" if host.is_https else "0"
    return f"{script_id}{session_id}{https_flag}{host.hostname}"


def bind_socket(ip: str, port: int) -> socket.socket:
    """Bind the listener address up front so a busy port fails before anything starts."""
    try:
        family = socket.AF_INET6 if ipaddress.ip_address(ip).version == 6 else socket.AF_INET
    except ValueError:
        family = socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((ip, port))
    except OSError as e:
        sock.close()
        raise BindError(
            f"{format_local_host(ip, port)} is unavailable, try binding to another address "
            "with the --port and --ip flags, or stop other `edge-preview dev` processes."
        ) from e
    sock.set_inheritable(True)
    return sock


def _server_config(app: Any, config: DevConfig) -> uvicorn.Config:
    ssl_options: dict[str, str] = {}
    if config.local_protocol.is_https:
        cert_path, key_path = ensure_dev_certificate(config.config_path)
        ssl_options = {"ssl_certfile": str(cert_path), "ssl_keyfile": str(key_path)}
    return uvicorn.Config(
        app,
        log_level="info" if config.verbose else "warning",
        # Access lines come from TerminalDisplay
        access_log=False,
        log_config=None,
        **ssl_options,
    )


async def run_dev(
    config: DevConfig,
    script_id: str,
    session_id: str | None = None,
    display: TerminalDisplay | None = None,
) -> None:
    """Serve the proxy and stream worker output until shutdown."""
    display = display or TerminalDisplay(config)
    session_id = session_id or new_session_id()
    preview_id = build_preview_id(script_id, session_id, config.upstream_host)
    logger.debug("Preview id: %s", preview_id)

    sock = bind_socket(config.ip, config.port)
    shutdown = ShutdownHandler()
    proxy_stop = shutdown.subscribe()

    session: InspectorSession | None = None
    inspector_stop: asyncio.Event | None = None
    if config.inspect:
        inspector_stop = shutdown.subscribe()
        try:
            session = await InspectorSession.connect(session_id, config, on_event=display.on_event)
        except BaseException:
            sock.close()
            raise

    app = create_app(
        config,
        preview_id,
        HttpClientSettings.from_config(config),
        on_request=display.on_request,
    )
    server = uvicorn.Server(_server_config(app, config))

    async def serve() -> None:
        try:
            await server.serve(sockets=[sock])
        finally:
            shutdown.trigger()

    async def stop_proxy() -> None:
        await proxy_stop.wait()
        server.should_exit = True

    async def inspect(active: InspectorSession, stop: asyncio.Event) -> None:
        try:
            await active.read_loop(stop)
        except SessionClosed as e:
            # The proxy keeps serving without worker output
            display.print_error(str(e))

    display.print_banner()
    tasks = [shutdown.run(), serve(), stop_proxy()]
    if session is not None and inspector_stop is not None:
        tasks.append(inspect(session, inspector_stop))
    try:
        await asyncio.gather(*tasks)
    finally:
        sock.close()


async def run_inspect(
    config: DevConfig,
    session_id: str,
    display: TerminalDisplay | None = None,
) -> None:
    """Stream worker output for an existing session until ctrl-c or expiry."""
    display = display or TerminalDisplay(config)
    shutdown = ShutdownHandler()
    stop = shutdown.subscribe()

    session = await InspectorSession.connect(session_id, config, on_event=display.on_event)
    runner = asyncio.ensure_future(shutdown.run())
    try:
        await session.read_loop(stop)
    finally:
        shutdown.trigger()
        await runner
