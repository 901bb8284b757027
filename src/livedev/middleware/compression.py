"""Gzip compression middleware configuration."""
from fastapi import FastAPI
from starlette.middleware.gzip import GZipMiddleware

EVENT_STREAM = "text/event-stream"


def configure_compression(app: FastAPI) -> None:
    """Gzip every response for clients that accept it.

    Content-Length is rewritten or dropped on compressed responses.
    Event streams are never compressed.

    Args:
        app: FastAPI application instance.
    """
    app.add_middleware(
        GZipMiddleware,
        minimum_size=0,
        exclude_content_types=(EVENT_STREAM,),
    )
