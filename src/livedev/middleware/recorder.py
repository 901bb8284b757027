"""In-memory response sink used by stages that inspect the final response."""

from starlette.datastructures import MutableHeaders
from starlette.responses import Response


class ResponseRecorder:
    """Captures status, headers and body instead of sending them.

    A stage records the inner response, inspects or mutates the captured
    state, then emits it with ``copy_to``.

    Attributes:
        status_code: Captured status code.
        headers: Captured headers; duplicates and order are preserved.
        body: Captured body bytes.
    """

    def __init__(
        self,
        status_code: int = 200,
        raw_headers: list[tuple[bytes, bytes]] | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers = MutableHeaders(raw=list(raw_headers or []))
        self.body = bytearray()

    @classmethod
    async def capture(cls, response: Response) -> "ResponseRecorder":
        """Drain a response into a new recorder.

        Args:
            response: Response produced by the inner application.

        Returns:
            Recorder holding the response's status, headers and body.
        """
        recorder = cls(response.status_code, response.raw_headers)
        body_iterator = getattr(response, "body_iterator", None)
        if body_iterator is None:
            recorder.write(response.body)
            return recorder

        async for chunk in body_iterator:
            if isinstance(chunk, str):
                chunk = chunk.encode(response.charset)
            recorder.write(chunk)
        return recorder

    @property
    def content_type(self) -> str:
        """Captured content type, or an empty string."""
        return self.headers.get("content-type", "")

    def write_header(self, status_code: int) -> None:
        """Store the status code without sending anything."""
        self.status_code = status_code

    def write(self, data: bytes) -> int:
        """Append to the captured body."""
        self.body.extend(data)
        return len(data)

    def copy_to(self) -> Response:
        """Replay the captured status, headers and body verbatim.

        Returns:
            Response carrying exactly the recorded state.
        """
        response = Response(content=bytes(self.body), status_code=self.status_code)
        response.raw_headers = list(self.headers.raw)
        return response
