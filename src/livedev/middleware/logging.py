"""Request logging middleware."""
import time
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from livedev.endpoints import SUBSCRIPTION_PATHS

logger = structlog.get_logger()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one structured line per request.

    Subscription streams are logged when they open, so their duration
    covers only the handshake. Server errors are logged at error level,
    and rewritten requests carry the path that was actually served.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and log details.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler.

        Returns:
            HTTP response from handler.
        """
        path = request.url.path
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        fields: dict[str, object] = {
            "method": request.method,
            "path": path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "client": request.client.host if request.client else None,
        }
        if path in SUBSCRIPTION_PATHS:
            fields["streaming"] = True
        # Inner stages share this scope, so a rewrite shows up here.
        served = request.scope.get("path", path)
        if served != path:
            fields["served_path"] = served

        if response.status_code >= 500:
            logger.error("http_request", **fields)
        else:
            logger.info("http_request", **fields)

        return response
