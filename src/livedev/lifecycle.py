"""Signal-driven graceful shutdown of the development server."""
import asyncio
import math
import signal
from typing import Protocol

import structlog

logger = structlog.get_logger()

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class StoppableServer(Protocol):
    """Server stopped by setting ``should_exit`` (uvicorn.Server)."""

    should_exit: bool


class GracefulShutdown:
    """Stops the server on SIGTERM/SIGINT after a drain period.

    Signal handlers call ``trigger``; ``stop_server_on_trigger`` then asks
    the server to exit, and uvicorn gives in-flight requests
    ``grace_seconds`` to finish before closing connections.

    Attributes:
        is_triggered: Whether shutdown has been triggered.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        """Initialize shutdown coordinator.

        Args:
            timeout: Seconds in-flight requests get to finish.
        """
        self._triggered = False
        self._event = asyncio.Event()
        self._timeout = timeout

    @property
    def grace_seconds(self) -> int:
        """Drain period as the whole seconds uvicorn accepts."""
        return max(1, math.ceil(self._timeout))

    @property
    def is_triggered(self) -> bool:
        """Check if shutdown has been triggered."""
        return self._triggered

    def trigger(self) -> None:
        """Begin shutdown. Calling it again has no effect."""
        if self._triggered:
            return
        logger.info("shutdown_triggered", grace_seconds=self.grace_seconds)
        self._triggered = True
        self._event.set()

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route SIGTERM and SIGINT to ``trigger``."""
        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self.trigger)

    async def wait_for_trigger(self) -> None:
        """Block until trigger() is called from a task or signal handler."""
        await self._event.wait()

    async def stop_server_on_trigger(self, server: StoppableServer) -> None:
        """Wait for the shutdown signal, then tell the server to exit.

        Args:
            server: Running server to stop.
        """
        await self.wait_for_trigger()
        if not server.should_exit:
            logger.info("server_stopping", grace_seconds=self.grace_seconds)
        server.should_exit = True
