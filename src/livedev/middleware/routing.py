"""Path-based routing ahead of static files: reverse proxy, redirects, rewrites."""

from collections.abc import Awaitable, Callable

import httpx
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response
from starlette.types import ASGIApp

from livedev.endpoints import is_internal_path
from livedev.schemas import ProxyRule, RedirectRule, RewriteRule

logger = structlog.get_logger()

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

# Headers recomputed locally for the forwarded request or the relayed response.
STRIPPED_HEADERS = HOP_BY_HOP_HEADERS | {"host", "content-length", "content-encoding"}


def prefix_matches(path: str, prefix: str) -> bool:
    """Check whether a path falls under a prefix."""
    return path.startswith(prefix)


def replace_prefix(path: str, prefix: str, replacement: str) -> str:
    """Swap a matched prefix for its replacement."""
    return replacement + path[len(prefix):]


def select_proxy_rule(path: str, rules: list[ProxyRule]) -> ProxyRule | None:
    """Pick the proxy rule for a path; the longest matching prefix wins."""
    matching = [rule for rule in rules if prefix_matches(path, rule.prefix)]
    if not matching:
        return None
    return max(matching, key=lambda rule: len(rule.prefix))


def filter_headers(headers: list[tuple[str, str]]) -> list[tuple[str, str]]:
    """Drop hop-by-hop and locally recomputed headers."""
    return [(k, v) for k, v in headers if k.lower() not in STRIPPED_HEADERS]


class ReverseProxyMiddleware(BaseHTTPMiddleware):
    """Forward requests under configured prefixes to other origins.

    The prefix is stripped before forwarding. Upstream failures become
    502 responses.
    """

    def __init__(self, app: ASGIApp, rules: list[ProxyRule]) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application.
            rules: Proxy rules.
        """
        super().__init__(app)
        self._rules = rules

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Proxy matching requests, pass others on.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler.

        Returns:
            Upstream response, a 502, or the inner response.
        """
        path = request.url.path
        rule = None if is_internal_path(path) else select_proxy_rule(path, self._rules)
        if rule is None:
            return await call_next(request)

        client: httpx.AsyncClient = request.app.state.http_client
        forwarded = path[len(rule.prefix):]
        if not forwarded.startswith("/"):
            forwarded = "/" + forwarded
        url = rule.target + forwarded
        if request.url.query:
            url += "?" + request.url.query

        try:
            upstream = await client.request(
                request.method,
                url,
                headers=filter_headers(list(request.headers.items())),
                content=await request.body(),
            )
        except httpx.HTTPError as e:
            logger.warning("proxy_failed", target=url, error=str(e))
            return PlainTextResponse("Bad Gateway", status_code=502)

        logger.debug("proxy_forwarded", target=url, status=upstream.status_code)
        response = Response(content=upstream.content, status_code=upstream.status_code)
        for key, value in filter_headers(list(upstream.headers.multi_items())):
            response.headers.append(key, value)
        response.headers["content-length"] = str(len(upstream.content))
        return response


class RewriteRedirectMiddleware(BaseHTTPMiddleware):
    """Apply redirect rules, then rewrite rules, in listed order."""

    def __init__(
        self,
        app: ASGIApp,
        redirects: list[RedirectRule],
        rewrites: list[RewriteRule],
    ) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application.
            redirects: Redirect rules; first match answers the request.
            rewrites: Rewrite rules; first match changes the path.
        """
        super().__init__(app)
        self._redirects = redirects
        self._rewrites = rewrites

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Redirect or rewrite matching requests.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler.

        Returns:
            Redirect response, or the inner response for the (rewritten) path.
        """
        path = request.url.path

        for redirect in self._redirects:
            if prefix_matches(path, redirect.prefix):
                location = replace_prefix(path, redirect.prefix, redirect.target)
                if request.url.query:
                    location += "?" + request.url.query
                logger.debug("redirect", path=path, location=location)
                return RedirectResponse(location, status_code=redirect.status_code)

        for rewrite in self._rewrites:
            if prefix_matches(path, rewrite.prefix):
                new_path = replace_prefix(path, rewrite.prefix, rewrite.replacement)
                if not new_path.startswith("/"):
                    new_path = "/" + new_path
                request.scope["path"] = new_path
                request.scope["raw_path"] = new_path.encode("utf-8")
                logger.debug("rewrite", path=path, rewritten=new_path)
                break

        return await call_next(request)
