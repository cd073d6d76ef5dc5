"""Data models shared by the proxy, inspector and CLI."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from urllib.parse import urlsplit

from pydantic import BaseModel, Field


class Protocol(StrEnum):
    """Scheme used by the local listener or the upstream preview service."""

    HTTP = "http"
    HTTPS = "https"

    @property
    def is_https(self) -> bool:
        return self is Protocol.HTTPS


class UpstreamHost(BaseModel):
    """The host a worker believes it is serving, e.g. ``https://example.com``."""

    scheme: Protocol = Field(description="Scheme of the host")
    hostname: str = Field(description="Bare host name, without port or path")

    @classmethod
    def parse(cls, text: str) -> UpstreamHost:
        """Parse ``example.com``, ``http://example.com`` or ``https://example.com``.

        A missing scheme defaults to https and any path is discarded.
        """
        candidate = text.strip()
        if "://" not in candidate:
            candidate = f"https://{candidate}"
        parts = urlsplit(candidate)
        if parts.scheme not in ("http", "https"):
            raise ValueError("Your host scheme must be either http or https")
        if not parts.hostname:
            raise ValueError(
                "Invalid host, accepted formats are example.com, "
                "http://example.com, or https://example.com"
            )
        return cls(scheme=Protocol(parts.scheme), hostname=parts.hostname)

    @property
    def is_https(self) -> bool:
        return self.scheme.is_https

    def __str__(self) -> str:
        return self.hostname


class RequestRecord(BaseModel):
    """One request that went through the local proxy."""

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the request was received",
    )
    method: str = Field(description="HTTP method")
    host: str = Field(description="Host the worker saw the request for")
    path: str = Field(description="Path and query string")
    http_version: str = Field(default="1.1", description="HTTP version of the local request")
    status_code: int | None = Field(default=None, description="Status returned to the client")
    error: str | None = Field(default=None, description="Error message if the request failed")
