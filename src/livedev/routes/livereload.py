"""Subscription endpoints relaying change events to browsers."""

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter, Request, WebSocket
from sse_starlette.sse import EventSourceResponse
from starlette.websockets import WebSocketState

from livedev.endpoints import SSE_PATH, WS_PATH
from livedev.events.bus import Subscriber

if TYPE_CHECKING:
    from livedev.events.bus import EventBus
    from livedev.events.hub import BroadcastHub

logger = structlog.get_logger()

router = APIRouter(tags=["livereload"])


async def relay_messages(websocket: WebSocket, subscriber: Subscriber) -> None:
    """Send each message on the subscriber's channel to the peer.

    Returns when the channel is closed or a send fails.

    Args:
        websocket: Accepted WebSocket connection.
        subscriber: Channel registered on the event bus.
    """
    async for message in subscriber:
        try:
            await websocket.send_text(message.model_dump_json())
        except Exception as e:
            logger.debug("websocket_send_failed", subscriber_id=subscriber.id, error=str(e))
            return


async def drain_until_disconnect(
    websocket: WebSocket,
    bus: "EventBus",
    subscriber: Subscriber,
) -> None:
    """Read and discard inbound frames until the peer goes away.

    Unregisters the subscriber as soon as the disconnect is seen.

    Args:
        websocket: Accepted WebSocket connection.
        bus: Event bus the subscriber is registered on.
        subscriber: Channel to unregister on disconnect.
    """
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        await bus.unregister(subscriber)


@router.websocket(WS_PATH)
async def live_reload_socket(websocket: WebSocket) -> None:
    """Relay change events over a WebSocket until either side disconnects.

    Args:
        websocket: Incoming WebSocket connection.
    """
    bus: EventBus = websocket.app.state.event_bus
    subscriber = await bus.register()

    try:
        await websocket.accept()
        logger.info(
            "websocket_client_connected",
            subscriber_id=subscriber.id,
            subscribers=bus.subscriber_count,
        )

        relay = asyncio.create_task(relay_messages(websocket, subscriber))
        drain = asyncio.create_task(drain_until_disconnect(websocket, bus, subscriber))
        tasks = {relay, drain}
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
            for task in tasks:
                with contextlib.suppress(asyncio.CancelledError):
                    await task
    finally:
        await bus.unregister(subscriber)
        logger.info(
            "websocket_client_disconnected",
            subscriber_id=subscriber.id,
            subscribers=bus.subscriber_count,
        )

    if websocket.client_state == WebSocketState.CONNECTED:
        with contextlib.suppress(RuntimeError):
            await websocket.close()


@router.get(SSE_PATH)
async def live_reload_stream(request: Request) -> EventSourceResponse:
    """Stream change events via Server-Sent Events.

    Each event is named after its change type and carries the JSON
    message as data. Heartbeats keep idle connections open.

    Args:
        request: FastAPI request object.

    Returns:
        SSE response stream with change events and heartbeats.
    """
    hub: BroadcastHub = request.app.state.broadcast_hub

    return EventSourceResponse(
        hub.create_sse_generator(),
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
