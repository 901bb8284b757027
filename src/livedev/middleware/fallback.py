"""Not-found handling: single-page-app fallback and custom 404 pages."""

from collections.abc import Awaitable, Callable
from pathlib import Path

import anyio
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.types import ASGIApp

from livedev.endpoints import is_internal_path
from livedev.middleware.inject import HTMLInjector
from livedev.middleware.recorder import ResponseRecorder

logger = structlog.get_logger()


def looks_like_route(path: str) -> bool:
    """Check whether the last path segment has no extension."""
    return "." not in path.rstrip("/").rsplit("/", 1)[-1]


async def read_file(path: Path) -> bytes | None:
    """Read a file off the event loop, or None if it cannot be read."""
    try:
        return await anyio.to_thread.run_sync(path.read_bytes)
    except OSError as e:
        logger.warning("fallback_file_unreadable", path=str(path), error=str(e))
        return None


class SPAFallbackMiddleware(BaseHTTPMiddleware):
    """Serve the root index.html for unmatched extensionless routes.

    A 404 for a path such as ``/dashboard`` becomes a 200 with the index
    document; ``/missing.png`` keeps its 404.
    """

    def __init__(
        self,
        app: ASGIApp,
        index_path: Path,
        injector: HTMLInjector | None = None,
    ) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application.
            index_path: Document served in place of the 404.
            injector: Live-reload injector applied to the served document.
        """
        super().__init__(app)
        self._index_path = index_path
        self._injector = injector

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Replace route-like 404s with the index document.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler.

        Returns:
            Index document, or the inner response unchanged.
        """
        path = request.url.path
        if request.method not in ("GET", "HEAD") or is_internal_path(path):
            return await call_next(request)

        recorder = await ResponseRecorder.capture(await call_next(request))
        if recorder.status_code != 404 or not looks_like_route(path):
            return recorder.copy_to()

        content = await read_file(self._index_path)
        if content is None:
            return recorder.copy_to()

        if self._injector is not None and request.method == "GET":
            content = self._injector.inject(content)

        logger.debug("spa_fallback", path=path)
        return HTMLResponse(content=content, status_code=200)


class CustomErrorPageMiddleware(BaseHTTPMiddleware):
    """Serve a configured HTML page for every 404 response."""

    def __init__(self, app: ASGIApp, page_path: Path) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application.
            page_path: HTML document served with status 404.
        """
        super().__init__(app)
        self._page_path = page_path

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Replace 404 bodies with the custom page when it exists.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler.

        Returns:
            Custom 404 page, or the inner response unchanged.
        """
        if is_internal_path(request.url.path):
            return await call_next(request)

        recorder = await ResponseRecorder.capture(await call_next(request))
        if recorder.status_code != 404 or not self._page_path.is_file():
            return recorder.copy_to()

        content = await read_file(self._page_path)
        if content is None:
            return recorder.copy_to()

        return HTMLResponse(content=content, status_code=404)
