"""Broadcast hub bridging watcher changes to subscribers and side effects."""

import asyncio
from collections.abc import AsyncIterator

import structlog
from sse_starlette import ServerSentEvent

from livedev.events.bus import EventBus
from livedev.events.notify import ChangeNotifier
from livedev.events.types import ChangeEvent, ChangeKind, FileChange

logger = structlog.get_logger()

HEARTBEAT_EVENT = "heartbeat"


class BroadcastHub:
    """Distributes classified file changes.

    Publishes each change on the event bus and hands it to the notifier
    for webhook and command side effects. Also produces the server-sent
    event stream for subscribers that do not use WebSockets.

    Attributes:
        heartbeat_interval: Seconds between SSE heartbeat events.
    """

    def __init__(
        self,
        event_bus: EventBus,
        notifier: ChangeNotifier | None = None,
        heartbeat_interval: float = 15.0,
    ) -> None:
        """Initialize broadcast hub.

        Args:
            event_bus: Event bus for pub/sub.
            notifier: Side-effect dispatcher; None disables side effects.
            heartbeat_interval: Seconds between heartbeats.
        """
        self._bus = event_bus
        self._notifier = notifier
        self._heartbeat_interval = heartbeat_interval
        self._active_streams = 0

    @property
    def bus(self) -> EventBus:
        """Underlying event bus."""
        return self._bus

    @property
    def active_streams(self) -> int:
        """Number of open SSE streams."""
        return self._active_streams

    async def on_file_change(self, change: FileChange) -> None:
        """Handle a debounced change from the watcher.

        Args:
            change: Classified change with metadata.
        """
        delivered = await self._bus.publish(change.event)
        logger.info(
            "change_published",
            change_type=change.event.type.value,
            path=change.event.path,
            operation=change.operation,
            delivered_to=delivered,
        )

        if self._notifier is not None:
            self._notifier.dispatch(change)

    async def trigger_reload(self, path: str = "/") -> int:
        """Ask every subscriber to reload.

        Args:
            path: Path reported with the reload.

        Returns:
            Number of subscribers that received the message.
        """
        event = ChangeEvent(type=ChangeKind.RELOAD, path=path)
        delivered = await self._bus.publish(event)
        logger.info("reload_triggered", path=path, delivered_to=delivered)
        return delivered

    async def create_sse_generator(self) -> AsyncIterator[ServerSentEvent]:
        """Create SSE event generator for a client connection.

        Yields each change as a server-sent event named after its type,
        with periodic heartbeats while idle.

        Yields:
            Server-sent events for the client.
        """
        subscriber = await self._bus.register()
        self._active_streams += 1

        logger.info(
            "sse_client_connected",
            subscriber_id=subscriber.id,
            active_streams=self._active_streams,
        )

        try:
            while True:
                try:
                    event = await asyncio.wait_for(
                        subscriber.get(),
                        timeout=self._heartbeat_interval,
                    )
                except TimeoutError:
                    yield ServerSentEvent(event=HEARTBEAT_EVENT, data="{}")
                    continue

                if event is None:
                    break
                yield ServerSentEvent(
                    event=event.type.value,
                    data=event.model_dump_json(),
                )
        except asyncio.CancelledError:
            pass
        finally:
            await self._bus.unregister(subscriber)
            self._active_streams -= 1

            logger.info(
                "sse_client_disconnected",
                subscriber_id=subscriber.id,
                active_streams=self._active_streams,
            )

    async def shutdown(self) -> None:
        """Close every subscriber and log final counters."""
        await self._bus.close()
        if self._notifier is not None:
            await self._notifier.shutdown()
        logger.info(
            "broadcast_hub_shutdown",
            published=self._bus.published_messages,
            dropped=self._bus.dropped_messages,
        )
