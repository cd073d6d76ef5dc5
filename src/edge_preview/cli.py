"""Click CLI for the dev proxy."""

from __future__ import annotations

import asyncio
from typing import Any

import click
from pydantic import ValidationError

from edge_preview.config import DevConfig
from edge_preview.exceptions import EdgePreviewError


def _load_config(overrides: dict[str, Any]) -> DevConfig:
    """Build config from CLI overrides (env vars handled by pydantic-settings)."""
    try:
        return DevConfig(**overrides)
    except ValidationError as e:
        error = e.errors()[0]
        message = str(error["msg"]).removeprefix("Value error, ")
        field = ".".join(str(part) for part in error.get("loc", ()))
        raise click.ClickException(f"{field}: {message}" if field else message) from e


def _run(coro: Any) -> None:
    try:
        asyncio.run(coro)
    except EdgePreviewError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """edge-preview - run a worker in the remote preview sandbox from localhost."""


@cli.command()
@click.option("--script-id", required=True, help="Id of the uploaded preview script")
@click.option("--session-id", default=None, help="Preview session id (default: new uuid)")
@click.option("--host", default=None, help="Host the worker sees requests for")
@click.option("--ip", default=None, help="IP to listen on (default: 127.0.0.1)")
@click.option("--port", default=None, type=int, help="Port to listen on (default: 8787)")
@click.option(
    "--local-protocol",
    default=None,
    type=click.Choice(["http", "https"]),
    help="Protocol served locally",
)
@click.option(
    "--upstream-protocol",
    default=None,
    type=click.Choice(["http", "https"]),
    help="Protocol used to reach the preview service",
)
@click.option("--no-inspect", is_flag=True, default=False, help="Don't stream worker output")
@click.option("--session-ttl", default=None, type=float, help="Close the inspector after N seconds")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Verbose output")
@click.option("--quiet", "-q", is_flag=True, default=False, help="Suppress access lines")
def dev(
    script_id: str,
    session_id: str | None,
    host: str | None,
    ip: str | None,
    port: int | None,
    local_protocol: str | None,
    upstream_protocol: str | None,
    no_inspect: bool,
    session_ttl: float | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Serve a preview worker on localhost and stream its console output."""
    overrides: dict[str, Any] = {}
    if host is not None:
        overrides["host"] = host
    if ip is not None:
        overrides["ip"] = ip
    if port is not None:
        overrides["port"] = port
    if local_protocol is not None:
        overrides["local_protocol"] = local_protocol
    if upstream_protocol is not None:
        overrides["upstream_protocol"] = upstream_protocol
    if no_inspect:
        overrides["inspect"] = False
    if session_ttl is not None:
        overrides["session_ttl"] = session_ttl
    if verbose:
        overrides["verbose"] = True
    if quiet:
        overrides["quiet"] = True

    config = _load_config(overrides)

    from edge_preview.dev import run_dev
    from edge_preview.display.logging import setup_logging

    setup_logging(verbose=config.verbose)
    _run(run_dev(config, script_id, session_id=session_id))


@cli.command()
@click.argument("session_id")
@click.option("--session-ttl", default=None, type=float, help="Close the session after N seconds")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Verbose output")
def inspect(session_id: str, session_ttl: float | None, verbose: bool) -> None:
    """Stream console output of an existing preview session."""
    overrides: dict[str, Any] = {}
    if session_ttl is not None:
        overrides["session_ttl"] = session_ttl
    if verbose:
        overrides["verbose"] = True

    config = _load_config(overrides)

    from edge_preview.dev import run_inspect
    from edge_preview.display.logging import setup_logging

    setup_logging(verbose=config.verbose)
    _run(run_inspect(config, session_id))
