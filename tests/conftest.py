"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from edge_preview.config import DevConfig


class FakeWebSocket:
    """In-memory stand-in for a devtools websocket connection.

    Frames queued with ``feed`` are returned by ``recv``; queued exceptions are
    raised instead, so a test can end the stream with ``ConnectionClosed``.
    """

    def __init__(self) -> None:
        self.inbox: asyncio.Queue[Any] = asyncio.Queue()
        self.sent: list[str] = []
        self.close_calls: list[tuple[int, str]] = []
        self.send_error: BaseException | None = None
        self.close_error: BaseException | None = None

    def feed(self, frame: Any) -> None:
        self.inbox.put_nowait(frame)

    def feed_json(self, payload: dict[str, Any]) -> None:
        self.feed(json.dumps(payload))

    async def recv(self) -> str | bytes:
        item = await self.inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, message: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_calls.append((code, reason))
        if self.close_error is not None:
            raise self.close_error

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        return [json.loads(message) for message in self.sent]


@pytest.fixture
def config(tmp_path: Any) -> DevConfig:
    """Create a test config rooted in a temporary directory."""
    return DevConfig(config_dir=str(tmp_path / "config"), quiet=False)


@pytest.fixture
def fake_socket() -> FakeWebSocket:
    return FakeWebSocket()


def console_frame(log_type: str, *args: dict[str, Any]) -> dict[str, Any]:
    """Build a ``Runtime.consoleAPICalled`` frame."""
    return {
        "method": "Runtime.consoleAPICalled",
        "params": {"type": log_type, "args": list(args)},
    }
