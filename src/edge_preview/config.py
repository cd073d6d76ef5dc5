"""Configuration for the dev proxy and inspector."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

from edge_preview.models import Protocol, UpstreamHost

DEFAULT_USER_AGENT = "edge-preview/0.1.0"


class DevConfig(BaseSettings):
    """Dev session configuration, loaded from env vars or CLI args."""

    model_config = {"env_prefix": "EDGE_PREVIEW_"}

    # Worker identity
    host: str = Field(
        default="https://example.com",
        description="Host the worker is developed against (sets the Host it sees)",
    )

    # Local listener
    ip: str = Field(default="127.0.0.1", description="IP to bind the local listener to")
    port: int = Field(default=8787, description="Port to bind the local listener to")
    local_protocol: Protocol = Field(
        default=Protocol.HTTP, description="Protocol served by the local listener"
    )

    # Preview service
    upstream_protocol: Protocol = Field(
        default=Protocol.HTTPS, description="Protocol used to reach the preview service"
    )
    preview_host: str = Field(
        default="rawhttp.cloudflareworkers.com",
        description="Host of the preview service that runs the uploaded worker",
    )
    inspector_url_template: str = Field(
        default="wss://{host}/inspect/{session_id}",
        description="Websocket URL of the devtools endpoint for a session",
    )

    # Inspector
    inspect: bool = Field(default=True, description="Stream worker console output")
    keepalive_interval: float = Field(
        default=10.0, gt=0, description="Seconds between inspector keep-alive messages"
    )
    session_ttl: float | None = Field(
        default=None, gt=0, description="Seconds after which the inspector session expires"
    )

    # HTTP client
    request_timeout: float = Field(default=300.0, description="Upstream request timeout")
    connect_timeout: float = Field(default=10.0, description="Upstream connect timeout")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent for upstream")

    # Local state
    config_dir: str = Field(
        default="~/.edge-preview",
        description="Directory holding the generated dev certificate",
    )

    # Display
    verbose: bool = Field(default=False, description="Verbose terminal output")
    quiet: bool = Field(default=False, description="Suppress terminal output")

    @model_validator(mode="after")
    def _check_protocols(self) -> DevConfig:
        upstream_host = UpstreamHost.parse(self.host)
        if upstream_host.is_https != self.upstream_protocol.is_https:
            raise ValueError(
                "Protocol mismatch: protocol in --host and protocol in "
                "--upstream-protocol must match"
            )
        if self.local_protocol.is_https and not self.upstream_protocol.is_https:
            raise ValueError("--local-protocol cannot be https if --upstream-protocol is http")
        return self

    @property
    def upstream_host(self) -> UpstreamHost:
        return UpstreamHost.parse(self.host)

    @property
    def config_path(self) -> Path:
        return Path(self.config_dir).expanduser()

    def inspector_url(self, session_id: str) -> str:
        """Websocket URL of the devtools endpoint for ``session_id``."""
        return self.inspector_url_template.format(host=self.preview_host, session_id=session_id)


class HttpClientSettings(BaseModel):
    """Process-wide HTTP client settings, built once and passed to collaborators."""

    timeout: float = Field(default=300.0, description="Overall request timeout in seconds")
    connect_timeout: float = Field(default=10.0, description="Connect timeout in seconds")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent header value")

    @classmethod
    def from_config(cls, config: DevConfig) -> HttpClientSettings:
        return cls(
            timeout=config.request_timeout,
            connect_timeout=config.connect_timeout,
            user_agent=config.user_agent,
        )
