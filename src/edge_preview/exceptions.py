"""Error taxonomy for the dev proxy and inspector."""

from __future__ import annotations


class EdgePreviewError(Exception):
    """Base class for errors surfaced to the user."""


class ProtocolViolation(EdgePreviewError):
    """The preview service sent a response the proxy cannot interpret."""


class ConnectError(EdgePreviewError):
    """An upstream connection could not be established."""


class SessionClosed(EdgePreviewError):
    """The inspector websocket was closed by the remote end or failed mid-session."""


class BindError(EdgePreviewError):
    """The local listener could not bind its address."""


class DecodeError(EdgePreviewError):
    """A devtools frame could not be turned into an event."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class UnrecognizedEvent(DecodeError):
    """The frame carries a ``method`` this client does not render."""

    def __init__(self, method: str | None, raw: str | None = None) -> None:
        super().__init__(f"unrecognized devtools method: {method!r}", raw)
        self.method = method


class MalformedEvent(DecodeError):
    """The frame is not JSON, or a known method failed structural parsing."""
