"""Entry point for the development server."""

import asyncio
import contextlib
import sys

import structlog
import uvicorn

from livedev.app import create_app
from livedev.config import Settings
from livedev.lifecycle import GracefulShutdown
from livedev.logging import configure_logging

logger = structlog.get_logger()


async def serve(settings: Settings) -> None:
    """Run uvicorn server with graceful shutdown support.

    Handles SIGTERM/SIGINT by letting in-flight requests drain for
    ``shutdown_timeout`` seconds before connections are closed.

    Args:
        settings: Server configuration.
    """
    app = create_app(settings)
    shutdown = GracefulShutdown(timeout=settings.shutdown_timeout)

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="warning",
        access_log=False,
        timeout_graceful_shutdown=shutdown.grace_seconds,
    )
    server = uvicorn.Server(config)

    shutdown.install_signal_handlers(asyncio.get_running_loop())

    async def run_server() -> None:
        """Serve until stopped, then release the shutdown waiter."""
        await server.serve()
        shutdown.trigger()

    logger.info(
        "server_listening",
        url=f"http://{settings.host}:{settings.port}",
        root=str(settings.root),
    )
    await asyncio.gather(run_server(), shutdown.stop_server_on_trigger(server))


def main() -> None:
    """Entry point for python -m livedev [root]."""
    overrides = {"root": sys.argv[1]} if len(sys.argv) > 1 else {}
    settings = Settings(**overrides)
    configure_logging(
        debug=settings.debug,
        log_file=settings.log_file,
        log_format=settings.log_format,
    )

    if not settings.root.is_dir():
        logger.error("root_missing", root=str(settings.root))
        sys.exit(1)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve(settings))

    sys.exit(0)


if __name__ == "__main__":
    main()
