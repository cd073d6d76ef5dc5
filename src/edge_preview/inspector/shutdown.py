"""Broadcast a single shutdown signal to every running task."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

logger = logging.getLogger(__name__)


class ShutdownHandler:
    """Waits for ctrl-c or a short circuit, then notifies every subscriber once."""

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Event] = []
        self._triggered = asyncio.Event()

    def subscribe(self) -> asyncio.Event:
        """Return an event that is set when shutdown begins."""
        event = asyncio.Event()
        self._subscribers.append(event)
        return event

    def trigger(self) -> None:
        """Short-circuit shutdown from inside the process (e.g. a task failed)."""
        self._triggered.set()

    @property
    def triggered(self) -> bool:
        return self._triggered.is_set()

    async def run(self, *, handle_signals: bool = True) -> None:
        loop = asyncio.get_running_loop()
        installed = False
        if handle_signals:
            # Not available on Windows event loops
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(signal.SIGINT, self.trigger)
                installed = True
        try:
            await self._triggered.wait()
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)

        logger.debug("Shutting down %d subscriber(s)", len(self._subscribers))
        for event in self._subscribers:
            event.set()
