"""In-memory event bus fanning change events out to live subscribers."""
import asyncio
import uuid
from collections.abc import AsyncIterator

import structlog

from livedev.events.types import ChangeEvent

logger = structlog.get_logger()

_CLOSED = object()


class Subscriber:
    """Bounded message channel for one live connection.

    Created by EventBus.register and closed exactly once by
    EventBus.unregister. Iterating yields messages in arrival order and
    stops once the channel is closed.

    Attributes:
        id: Unique subscriber identifier.
    """

    def __init__(self, capacity: int) -> None:
        """Initialize subscriber channel.

        Args:
            capacity: Maximum number of undelivered messages held.
        """
        self.id = str(uuid.uuid4())
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=capacity + 1)
        self._capacity = capacity
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the channel has been closed."""
        return self._closed

    def offer(self, message: ChangeEvent) -> bool:
        """Enqueue a message without waiting.

        Args:
            message: Message to deliver.

        Returns:
            True if queued, False if the channel is closed or full.
        """
        if self._closed or self._queue.qsize() >= self._capacity:
            return False
        self._queue.put_nowait(message)
        return True

    def close(self) -> bool:
        """Close the channel, discarding undelivered messages.

        Returns:
            True if this call closed the channel, False if already closed.
        """
        if self._closed:
            return False
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)
        return True

    async def get(self) -> ChangeEvent | None:
        """Wait for the next message.

        Returns:
            The next message, or None once the channel is closed.
        """
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for any later reader.
            self._queue.put_nowait(_CLOSED)
            return None
        return item  # type: ignore[return-value]

    async def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        while True:
            message = await self.get()
            if message is None:
                return
            yield message


class EventBus:
    """Async pub/sub registry of live subscribers.

    Publishing never waits on a subscriber: a subscriber whose channel is
    full misses the message. Registration, unregistration and publishing
    are serialized by a single lock.

    Attributes:
        capacity: Maximum undelivered messages per subscriber.
        max_subscribers: Maximum number of concurrent subscribers.
    """

    def __init__(
        self,
        capacity: int = 16,
        max_subscribers: int = 256,
    ) -> None:
        """Initialize event bus.

        Args:
            capacity: Maximum items per subscriber channel.
            max_subscribers: Maximum concurrent subscribers allowed.
        """
        self._subscribers: dict[str, Subscriber] = {}
        self._capacity = capacity
        self._max_subscribers = max_subscribers
        self._dropped_count = 0
        self._published_count = 0
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        """Number of registered subscribers."""
        return len(self._subscribers)

    @property
    def dropped_messages(self) -> int:
        """Total deliveries missed because a subscriber channel was full."""
        return self._dropped_count

    @property
    def published_messages(self) -> int:
        """Total number of messages published."""
        return self._published_count

    async def register(self) -> Subscriber:
        """Register a new subscriber.

        Returns:
            The subscriber's channel.

        Raises:
            ValueError: If maximum subscribers reached.
        """
        async with self._lock:
            if len(self._subscribers) >= self._max_subscribers:
                raise ValueError("Maximum subscribers reached")

            subscriber = Subscriber(self._capacity)
            self._subscribers[subscriber.id] = subscriber

        logger.debug(
            "subscriber_registered",
            subscriber_id=subscriber.id,
            subscribers=len(self._subscribers),
        )
        return subscriber

    async def unregister(self, subscriber: Subscriber) -> None:
        """Remove a subscriber and close its channel.

        Unknown or already removed subscribers are ignored.

        Args:
            subscriber: Subscriber to remove.
        """
        async with self._lock:
            if self._subscribers.pop(subscriber.id, None) is None:
                return
            subscriber.close()

        logger.debug(
            "subscriber_unregistered",
            subscriber_id=subscriber.id,
            subscribers=len(self._subscribers),
        )

    async def publish(self, message: ChangeEvent) -> int:
        """Offer a message to every registered subscriber.

        Args:
            message: Change event to publish.

        Returns:
            Number of subscribers that received the message.
        """
        delivered = 0
        async with self._lock:
            self._published_count += 1
            for subscriber in self._subscribers.values():
                if subscriber.offer(message):
                    delivered += 1
                else:
                    self._dropped_count += 1
                    logger.debug(
                        "subscriber_message_dropped",
                        subscriber_id=subscriber.id,
                    )

        return delivered

    async def close(self) -> None:
        """Unregister every subscriber."""
        async with self._lock:
            subscribers = list(self._subscribers.values())
            self._subscribers.clear()
            for subscriber in subscribers:
                subscriber.close()
