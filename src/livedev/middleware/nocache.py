"""No-cache and permissive CORS headers for every response."""
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

NO_CACHE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Allow-Credentials": "true",
}


class NoCacheMiddleware(BaseHTTPMiddleware):
    """Middleware that disables browser caching and allows any origin.

    Preflight ``OPTIONS`` requests are answered directly with an empty 200.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Stamp caching and CORS headers on the response.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler.

        Returns:
            HTTP response with the headers set.
        """
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)

        response.headers.update(NO_CACHE_HEADERS)
        response.headers.update(CORS_HEADERS)
        response.headers["Access-Control-Allow-Origin"] = request.headers.get("origin", "*")
        return response
