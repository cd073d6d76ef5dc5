"""Rich logging configuration for diagnostics."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

LOG_THEME = Theme(
    {
        "logging.level.debug": "dim white",
        "logging.level.info": "cyan",
        "logging.level.warning": "yellow",
        "logging.level.error": "bold red",
    }
)

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "websockets")


def setup_logging(level: str = "WARNING", *, verbose: bool = False) -> None:
    """Send diagnostics to stderr through a Rich handler.

    Worker output and access lines go through ``TerminalDisplay``, not here.
    """
    if verbose:
        level = "DEBUG"

    rich_handler = RichHandler(
        console=Console(theme=LOG_THEME, stderr=True),
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    rich_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%H:%M:%S]"))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=[rich_handler],
        force=True,
    )

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
