"""Admin endpoints for triggering reloads, status and running commands."""

import asyncio
import json
from typing import TypeVar

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from livedev.config import Settings
from livedev.endpoints import ADMIN_PREFIX

logger = structlog.get_logger()

router = APIRouter(prefix=ADMIN_PREFIX, tags=["admin"])

MAX_OUTPUT_BYTES = 64 * 1024  # 64KB

T = TypeVar("T", bound=BaseModel)


class ReloadRequest(BaseModel):
    """Optional request body for triggering a reload."""

    path: str = Field(default="/", max_length=2048)


class ReloadResponse(BaseModel):
    """Response after publishing a reload."""

    success: bool
    delivered: int


class StatusResponse(BaseModel):
    """Current server state."""

    status: str
    root: str
    subscribers: int
    published: int
    dropped: int
    coalesced: int
    features: dict[str, bool]


class ExecRequest(BaseModel):
    """Request body for running an external command."""

    command: list[str] = Field(min_length=1)
    timeout: float = Field(default=30.0, gt=0, le=600)


class ExecResponse(BaseModel):
    """Result of a finished command."""

    exit_code: int
    stdout: str
    stderr: str


async def parse_body(request: Request, model: type[T], allow_empty: bool = False) -> T:
    """Validate a JSON request body, mapping malformed input to 400.

    Args:
        request: Incoming request.
        model: Model describing the body.
        allow_empty: Treat an empty body as an empty object.

    Returns:
        Validated model instance.

    Raises:
        HTTPException: 400 if the body is not valid JSON or fails validation.
    """
    raw = await request.body()
    if not raw.strip() and allow_empty:
        return model()
    try:
        return model.model_validate(json.loads(raw))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        logger.warning("admin_bad_request", path=request.url.path, error=str(e))
        raise HTTPException(status_code=400, detail="Malformed request body") from e


@router.post("/reload", response_model=ReloadResponse)
async def trigger_reload(request: Request) -> ReloadResponse:
    """Ask every connected browser to reload.

    Args:
        request: Request with an optional ``{"path": ...}`` body.

    Returns:
        Number of subscribers the reload was delivered to.
    """
    body = await parse_body(request, ReloadRequest, allow_empty=True)
    delivered = await request.app.state.broadcast_hub.trigger_reload(body.path)
    return ReloadResponse(success=True, delivered=delivered)


@router.get("/status", response_model=StatusResponse)
async def report_status(request: Request) -> StatusResponse:
    """Report subscriber and watcher counters.

    Args:
        request: Incoming request.

    Returns:
        Server status.
    """
    settings: Settings = request.app.state.settings
    bus = request.app.state.event_bus
    watcher = request.app.state.watcher

    return StatusResponse(
        status="ok",
        root=str(watcher.root),
        subscribers=bus.subscriber_count,
        published=bus.published_messages,
        dropped=bus.dropped_messages,
        coalesced=watcher.coalesced_events,
        features={
            "live_reload": settings.live_reload,
            "spa_fallback": settings.spa_fallback,
            "directory_listing": settings.directory_listing,
            "compression": settings.compression,
            "custom_404": bool(settings.custom_404),
            "webhook": bool(settings.webhook_url),
        },
    )


@router.post("/exec", response_model=ExecResponse)
async def run_command(request: Request) -> ExecResponse:
    """Run an external command and wait for it to finish.

    Only available when an admin token is configured.

    Args:
        request: Request with a ``{"command": [...], "timeout": ...}`` body.

    Returns:
        Exit code and captured output.
    """
    settings: Settings = request.app.state.settings
    if not settings.admin_token:
        raise HTTPException(status_code=403, detail="Command execution requires an admin token")

    body = await parse_body(request, ExecRequest)

    logger.info("admin_exec_starting", command=body.command)

    try:
        process = await asyncio.create_subprocess_exec(
            *body.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(settings.root),
        )
    except OSError as e:
        logger.error("admin_exec_failed", command=body.command, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to start command") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=body.timeout)
    except TimeoutError as e:
        process.kill()
        await process.wait()
        logger.warning("admin_exec_timeout", command=body.command, timeout=body.timeout)
        raise HTTPException(status_code=504, detail="Command timed out") from e

    logger.info("admin_exec_finished", command=body.command, exit_code=process.returncode)
    return ExecResponse(
        exit_code=process.returncode if process.returncode is not None else -1,
        stdout=stdout[:MAX_OUTPUT_BYTES].decode("utf-8", errors="replace"),
        stderr=stderr[:MAX_OUTPUT_BYTES].decode("utf-8", errors="replace"),
    )
