"""Event bus tests."""

import asyncio

import pytest

from livedev.events.bus import EventBus
from livedev.events.types import ChangeEvent, ChangeKind


def reload_event(path: str = "/index.html") -> ChangeEvent:
    return ChangeEvent(type=ChangeKind.RELOAD, path=path)


def test_publish_reaches_every_registered_subscriber() -> None:
    """Every registered subscriber receives a published event."""

    async def scenario() -> tuple[int, list[ChangeEvent | None]]:
        bus = EventBus(capacity=4)
        first = await bus.register()
        second = await bus.register()
        delivered = await bus.publish(reload_event())
        return delivered, [await first.get(), await second.get()]

    delivered, received = asyncio.run(scenario())
    assert delivered == 2
    assert [event.path for event in received if event] == ["/index.html", "/index.html"]


def test_subscriber_sees_only_events_inside_its_window() -> None:
    """Events before registration and after unregistration are not observed."""

    async def scenario() -> list[str]:
        bus = EventBus(capacity=8)
        await bus.publish(reload_event("/before.html"))
        subscriber = await bus.register()
        await bus.publish(reload_event("/during-1.html"))
        await bus.publish(reload_event("/during-2.html"))

        received = [event.path for event in [await subscriber.get(), await subscriber.get()] if event]

        await bus.unregister(subscriber)
        await bus.publish(reload_event("/after.html"))
        received += [event.path async for event in subscriber]
        return received

    assert asyncio.run(scenario()) == ["/during-1.html", "/during-2.html"]


def test_full_subscriber_misses_messages_without_blocking_publisher() -> None:
    """A subscriber with a full channel drops new messages."""

    async def scenario() -> tuple[list[int], int, list[str]]:
        bus = EventBus(capacity=2)
        slow = await bus.register()
        delivered = [
            await asyncio.wait_for(bus.publish(reload_event(f"/{i}.html")), timeout=1.0)
            for i in range(4)
        ]
        received = [(await slow.get()).path, (await slow.get()).path]  # type: ignore[union-attr]
        return delivered, bus.dropped_messages, received

    delivered, dropped, received = asyncio.run(scenario())
    assert delivered == [1, 1, 0, 0]
    assert dropped == 2
    assert received == ["/0.html", "/1.html"]


def test_messages_arrive_in_publish_order() -> None:
    """Each subscriber processes its channel first in, first out."""

    async def scenario() -> list[str]:
        bus = EventBus(capacity=10)
        subscriber = await bus.register()
        for name in ("a", "b", "c"):
            await bus.publish(reload_event(f"/{name}.html"))
        return [(await subscriber.get()).path for _ in range(3)]  # type: ignore[union-attr]

    assert asyncio.run(scenario()) == ["/a.html", "/b.html", "/c.html"]


def test_unregister_discards_unread_messages() -> None:
    """Nothing queued before unregistration is delivered afterwards."""

    async def scenario() -> list[str]:
        bus = EventBus(capacity=10)
        subscriber = await bus.register()
        for name in ("a", "b", "c"):
            await bus.publish(reload_event(f"/{name}.html"))
        await bus.unregister(subscriber)
        return [event.path async for event in subscriber]

    assert asyncio.run(scenario()) == []


def test_unregister_twice_closes_channel_once() -> None:
    """Unregistering is idempotent and leaves the channel closed."""

    async def scenario() -> tuple[bool, ChangeEvent | None, ChangeEvent | None, int, bool]:
        bus = EventBus()
        subscriber = await bus.register()
        await bus.unregister(subscriber)
        await bus.unregister(subscriber)
        second_close = subscriber.close()
        return (
            subscriber.closed,
            await subscriber.get(),
            await subscriber.get(),
            bus.subscriber_count,
            second_close,
        )

    closed, first, second, count, second_close = asyncio.run(scenario())
    assert closed is True
    assert first is None
    assert second is None
    assert count == 0
    assert second_close is False


def test_iteration_ends_when_unregistered() -> None:
    """A consumer iterating the channel stops once it is closed."""

    async def scenario() -> list[str]:
        bus = EventBus()
        subscriber = await bus.register()

        async def consume() -> list[str]:
            return [event.path async for event in subscriber]

        consumer = asyncio.create_task(consume())
        await bus.publish(reload_event("/one.html"))
        await asyncio.sleep(0.01)
        await bus.unregister(subscriber)
        return await asyncio.wait_for(consumer, timeout=1.0)

    assert asyncio.run(scenario()) == ["/one.html"]


def test_register_respects_subscriber_limit() -> None:
    """Registering past the limit raises ValueError."""

    async def scenario() -> None:
        bus = EventBus(max_subscribers=1)
        await bus.register()
        await bus.register()

    with pytest.raises(ValueError, match="Maximum subscribers"):
        asyncio.run(scenario())


def test_publish_counts_messages() -> None:
    """Published messages are counted even with no subscribers."""

    async def scenario() -> tuple[int, int]:
        bus = EventBus()
        delivered = await bus.publish(reload_event())
        return delivered, bus.published_messages

    assert asyncio.run(scenario()) == (0, 1)
