"""Bearer token authentication for the admin API."""

import secrets
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from livedev.endpoints import ADMIN_PREFIX


class AdminTokenMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the bearer token for admin endpoints.

    Everything outside the admin API is left alone.
    """

    def __init__(self, app: ASGIApp, token: str) -> None:
        """Initialize middleware with the admin token.

        Args:
            app: ASGI application.
            token: Expected bearer token value.
        """
        super().__init__(app)
        self._token = token

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Validate the bearer token for admin endpoints.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler.

        Returns:
            HTTP response, 401 if the token is missing, 403 if it is wrong.
        """
        path = request.url.path
        if path != ADMIN_PREFIX and not path.startswith(ADMIN_PREFIX + "/"):
            return await call_next(request)

        scheme, _, provided = request.headers.get("Authorization", "").partition(" ")

        if scheme.lower() != "bearer" or not provided:
            return JSONResponse(
                status_code=401,
                content={"error": "Missing bearer token"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not secrets.compare_digest(provided.strip(), self._token):
            return JSONResponse(
                status_code=403,
                content={"error": "Invalid bearer token"},
            )

        return await call_next(request)
