"""Websocket session with the remote devtools inspector."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from edge_preview.config import DevConfig
from edge_preview.exceptions import ConnectError, DecodeError, SessionClosed
from edge_preview.inspector.events import DevtoolsEvent, decode

logger = logging.getLogger(__name__)

ENABLE_METHODS = ("Profiler.enable", "Runtime.enable", "Debugger.enable")
KEEPALIVE_METHOD = "Runtime.getIsolateId"
NORMAL_CLOSURE = 1000


class SessionState(StrEnum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class InspectorSocket(Protocol):
    """The slice of a websocket connection the session relies on."""

    async def recv(self) -> str | bytes: ...

    async def send(self, message: str) -> None: ...

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None: ...


class InspectorSession:
    """Streams console output and exceptions from a remote worker.

    The session owns its socket exclusively. ``read_loop`` waits on the next
    frame, the keep-alive timer, the cancel signal and the optional expiry
    deadline, handling whichever is ready first.
    """

    def __init__(
        self,
        socket: InspectorSocket,
        *,
        keepalive_interval: float = 10.0,
        session_ttl: float | None = None,
        on_event: Callable[[DevtoolsEvent], Any] | None = None,
    ) -> None:
        self._socket = socket
        self._keepalive_interval = keepalive_interval
        self._session_ttl = session_ttl
        self._on_event = on_event
        self._expires_at: float | None = None
        self._next_message_id = 1
        self.state = SessionState.CONNECTING

    @classmethod
    async def connect(
        cls,
        session_id: str,
        config: DevConfig,
        on_event: Callable[[DevtoolsEvent], Any] | None = None,
    ) -> InspectorSession:
        """Open the devtools websocket for ``session_id`` and enable event reporting."""
        url = config.inspector_url(session_id)
        logger.info("Connecting to devtools: %s", url)
        try:
            socket = await websockets.connect(
                url,
                user_agent_header=config.user_agent,
                open_timeout=config.connect_timeout,
                max_size=None,
            )
        except (OSError, TimeoutError, WebSocketException) as e:
            raise ConnectError(f"failed to connect to devtools instance: {e}") from e

        session = cls(
            socket,
            keepalive_interval=config.keepalive_interval,
            session_ttl=config.session_ttl,
            on_event=on_event,
        )
        await session.start()
        return session

    @property
    def closed(self) -> bool:
        return self.state in (SessionState.CLOSING, SessionState.CLOSED)

    @property
    def next_message_id(self) -> int:
        return self._next_message_id

    async def start(self) -> None:
        """Send the protocol-enable handshake and enter the active state."""
        try:
            for method in ENABLE_METHODS:
                await self._send(method)
        except (ConnectionClosed, OSError) as e:
            self.state = SessionState.CLOSED
            raise ConnectError(f"failed to connect to devtools instance: {e}") from e
        if self._session_ttl is not None:
            self._expires_at = asyncio.get_running_loop().time() + self._session_ttl
        self.state = SessionState.ACTIVE

    async def _send(self, method: str) -> int:
        message_id = self._next_message_id
        self._next_message_id += 1
        message = json.dumps({"id": message_id, "method": method})
        logger.debug("Sending devtools message: %s", message)
        await self._socket.send(message)
        return message_id

    def handle_frame(self, raw: str | bytes) -> DevtoolsEvent | None:
        """Decode and emit one inbound frame. Undecodable frames are logged and skipped."""
        logger.debug("Devtools frame: %s", raw)
        try:
            event = decode(raw)
        except DecodeError as e:
            logger.debug("This event was not parsed as a devtools event: %s", e)
            return None
        if self._on_event is not None:
            try:
                self._on_event(event)
            except Exception:
                logger.debug("Event listener failed on %s", event.method, exc_info=True)
        return event

    async def send_keepalive(self) -> None:
        try:
            await self._send(KEEPALIVE_METHOD)
        except (ConnectionClosed, OSError) as e:
            self.state = SessionState.CLOSED
            raise SessionClosed(f"Failed to send keep-alive to devtools: {e}") from e

    async def read_loop(self, cancel: asyncio.Event | None = None) -> None:
        """Read and render events until cancelled, expired or the connection drops."""
        loop = asyncio.get_running_loop()
        recv_task: asyncio.Future[Any] | None = None
        keepalive_task: asyncio.Future[Any] | None = None
        cancel_task = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        expiry_task = None
        if self._expires_at is not None:
            remaining = max(0.0, self._expires_at - loop.time())
            expiry_task = asyncio.ensure_future(asyncio.sleep(remaining))

        try:
            while self.state is SessionState.ACTIVE:
                if recv_task is None:
                    recv_task = asyncio.ensure_future(self._socket.recv())
                if keepalive_task is None:
                    keepalive_task = asyncio.ensure_future(asyncio.sleep(self._keepalive_interval))
                waiting = {
                    task
                    for task in (recv_task, keepalive_task, cancel_task, expiry_task)
                    if task is not None
                }
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)

                # A frame that already arrived is rendered before any close
                if recv_task in done:
                    finished, recv_task = recv_task, None
                    try:
                        frame = finished.result()
                    except ConnectionClosed as e:
                        self.state = SessionState.CLOSED
                        raise SessionClosed(f"Received close from devtools: {e}") from e
                    self.handle_frame(frame)
                if cancel_task in done:
                    await self.close(NORMAL_CLOSURE, "closing due to ctrl-c")
                    break
                if expiry_task in done:
                    await self.close(NORMAL_CLOSURE, "closing due to session expiration")
                    break
                if keepalive_task in done:
                    keepalive_task = None
                    await self.send_keepalive()
        finally:
            for task in (recv_task, keepalive_task, cancel_task, expiry_task):
                if task is not None and not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError, ConnectionClosed):
                        await task

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Close the session. Safe to call more than once."""
        if self.closed:
            return
        self.state = SessionState.CLOSING
        try:
            # Already closed on the remote side counts as closed
            with contextlib.suppress(ConnectionClosed):
                await self._socket.close(code=code, reason=reason)
        finally:
            self.state = SessionState.CLOSED
        logger.info("Closed devtools session: %s", reason)
