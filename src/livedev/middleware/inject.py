"""Live-reload client injection into HTML responses."""

from collections.abc import Awaitable, Callable
from pathlib import Path

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from livedev.endpoints import WS_PATH, is_internal_path
from livedev.middleware.recorder import ResponseRecorder

logger = structlog.get_logger()

HEAD_CLOSE = b"</head>"
BODY_CLOSE = b"</body>"

RELOAD_CLIENT = """<script>
(function () {
  if (window.__livedev__) { return; }
  window.__livedev__ = true;

  function bust(url) {
    var u = new URL(url, location.href);
    u.searchParams.set("livedev", Date.now().toString());
    return u.toString();
  }

  function updateStyles(path) {
    var found = false;
    document.querySelectorAll('link[rel="stylesheet"]').forEach(function (link) {
      if (link.href && link.href.indexOf(path) !== -1) {
        link.href = bust(link.href);
        found = true;
      }
    });
    return found;
  }

  function updateScripts(path) {
    var found = false;
    document.querySelectorAll("script[src]").forEach(function (old) {
      if (old.src.indexOf(path) === -1) { return; }
      var fresh = document.createElement("script");
      Array.prototype.forEach.call(old.attributes, function (attr) {
        fresh.setAttribute(attr.name, attr.value);
      });
      fresh.src = bust(old.src);
      old.parentNode.replaceChild(fresh, old);
      found = true;
    });
    return found;
  }

  function handle(message) {
    if (message.type === "css-update" && updateStyles(message.path)) { return; }
    if (message.type === "js-update" && updateScripts(message.path)) { return; }
    location.reload();
  }

  function connect() {
    var scheme = location.protocol === "https:" ? "wss://" : "ws://";
    var socket = new WebSocket(scheme + location.host + "__WS_PATH__");
    socket.onmessage = function (event) {
      var message;
      try { message = JSON.parse(event.data); } catch (e) { return; }
      handle(message);
    };
    socket.onclose = function () { setTimeout(connect, 1000); };
  }

  connect();
})();
</script>
""".replace("__WS_PATH__", WS_PATH)


class HTMLInjector:
    """Inserts custom assets and the live-reload client into HTML bodies.

    Custom stylesheet and script contents go before the last ``</head>``;
    the reload client goes before the last ``</body>``, or at the end of
    the document when there is none.
    """

    def __init__(self, head_snippet: str = "", client_script: str = RELOAD_CLIENT) -> None:
        self._head = head_snippet.encode("utf-8")
        self._client = client_script.encode("utf-8")

    @classmethod
    def from_files(cls, inject_js: str = "", inject_css: str = "") -> "HTMLInjector":
        """Build an injector from optional stylesheet and script files.

        Args:
            inject_js: Path of a script to inline; empty skips it.
            inject_css: Path of a stylesheet to inline; empty skips it.

        Raises:
            OSError: If a configured file cannot be read.
        """
        head = ""
        if inject_css:
            head += "<style>\n" + Path(inject_css).read_text(encoding="utf-8") + "\n</style>\n"
        if inject_js:
            head += "<script>\n" + Path(inject_js).read_text(encoding="utf-8") + "\n</script>\n"
        return cls(head_snippet=head)

    def inject(self, body: bytes) -> bytes:
        """Return the body with custom assets and the reload client inserted."""
        tail = self._client
        if self._head:
            index = body.lower().rfind(HEAD_CLOSE)
            if index == -1:
                tail = self._head + tail
            else:
                body = body[:index] + self._head + body[index:]

        index = body.lower().rfind(BODY_CLOSE)
        if index == -1:
            return body + tail
        return body[:index] + tail + body[index:]

    def apply(self, recorder: ResponseRecorder) -> None:
        """Inject into a recorded response and fix its Content-Length."""
        recorder.body = bytearray(self.inject(bytes(recorder.body)))
        recorder.headers["content-length"] = str(len(recorder.body))


def is_injectable(recorder: ResponseRecorder) -> bool:
    """Check whether a recorded response is a successful HTML page."""
    return recorder.status_code == 200 and "text/html" in recorder.content_type.lower()


class LiveReloadMiddleware(BaseHTTPMiddleware):
    """Middleware that injects the live-reload client into HTML pages.

    Subscription endpoints, the admin API and non-GET requests pass
    straight through.
    """

    def __init__(self, app: ASGIApp, injector: HTMLInjector) -> None:
        """Initialize middleware with an injector.

        Args:
            app: ASGI application.
            injector: Injector applied to HTML responses.
        """
        super().__init__(app)
        self._injector = injector

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Record the inner response and inject into successful HTML.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler.

        Returns:
            Injected response, or the inner response unchanged.
        """
        if request.method != "GET" or is_internal_path(request.url.path):
            return await call_next(request)

        recorder = await ResponseRecorder.capture(await call_next(request))
        if not is_injectable(recorder):
            return recorder.copy_to()

        original = bytes(recorder.body)
        try:
            self._injector.apply(recorder)
        except Exception as e:
            logger.error("inject_failed", path=request.url.path, error=str(e))
            recorder.body = bytearray(original)
        return recorder.copy_to()
