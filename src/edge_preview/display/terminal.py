"""Rich terminal display for worker output and proxied requests."""

from __future__ import annotations

import contextlib
from http import HTTPStatus

from rich.console import Console
from rich.text import Text

from edge_preview.config import DevConfig
from edge_preview.inspector.events import ConsoleAPICalled, DevtoolsEvent, ExceptionThrown
from edge_preview.models import RequestRecord
from edge_preview.proxy.redirect import format_local_host

# console.* method -> (style, goes to stderr)
LOG_TYPE_STYLES: dict[str, tuple[str, bool]] = {
    "log": ("blue", False),
    "info": ("blue", False),
    "debug": ("dim", False),
    "warning": ("yellow", True),
    "error": ("red", True),
    "assert": ("red", True),
    "trace": ("dim", True),
}
EXCEPTION_STYLE = "bold red"

ACCESS_TIME_FORMAT = "[%Y-%m-%d %H:%M:%S]"


def reason_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


def format_access_line(record: RequestRecord) -> str:
    """``[2024-01-01 12:00:00] GET example.com/path HTTP/1.1 200 OK``"""
    timestamp = record.timestamp.astimezone().strftime(ACCESS_TIME_FORMAT)
    line = f"{timestamp} {record.method} {record.host}{record.path} HTTP/{record.http_version}"
    if record.status_code is not None:
        line += f" {record.status_code}"
        phrase = reason_phrase(record.status_code)
        if phrase:
            line += f" {phrase}"
    return line


class TerminalDisplay:
    """Rich terminal display for real-time worker output."""

    def __init__(
        self,
        config: DevConfig,
        console: Console | None = None,
        err_console: Console | None = None,
    ) -> None:
        self._config = config
        self._console = console or Console(highlight=False)
        self._err_console = err_console or Console(stderr=True, highlight=False)

    @property
    def console(self) -> Console:
        """Access the underlying Rich console."""
        return self._console

    @property
    def err_console(self) -> Console:
        return self._err_console

    def on_event(self, event: DevtoolsEvent) -> None:
        """Print one console call or uncaught exception from the worker."""
        if isinstance(event, ConsoleAPICalled):
            style, to_stderr = LOG_TYPE_STYLES.get(event.params.log_type, ("", False))
        elif isinstance(event, ExceptionThrown):
            style, to_stderr = EXCEPTION_STYLE, True
        else:
            return
        console = self._err_console if to_stderr else self._console
        try:
            # Worker text may contain brackets; never treat it as markup
            console.print(Text(event.render(), style=style))
        except (UnicodeEncodeError, OSError):
            # Fallback for terminals that can't render certain characters (e.g. Windows cp1252)
            with contextlib.suppress(Exception):
                console.print(Text(event.render().encode("ascii", "replace").decode("ascii")))

    async def on_request(self, record: RequestRecord) -> None:
        """Print the access line for a proxied request."""
        if self._config.quiet:
            return
        line = Text(format_access_line(record))
        if record.error and self._config.verbose:
            line.append(f"  {record.error}", style="red")
        elif record.status_code is not None and record.status_code >= 500:
            line.stylize("red")
        self._console.print(line)

    def print_banner(self) -> None:
        if self._config.quiet:
            return
        local_host = format_local_host(self._config.ip, self._config.port)
        listener = f"{self._config.local_protocol.value}://{local_host}"
        self._console.print(f"[bold]Listening on[/bold] [green]{listener}[/green]")
        self._console.print(f"  Worker host: {self._config.upstream_host.hostname}")
        if self._config.verbose:
            self._console.print(f"  Preview service: {self._config.preview_host}")
        self._console.print()

    def print_error(self, message: str) -> None:
        self._err_console.print(Text(message, style="bold red"))
