"""
Tests unitaires pour OutboundEventChannel et EventDispatcher.
"""

import asyncio
import json
from typing import List
from unittest.mock import AsyncMock, patch

import pytest

from authstate.events import (
    USER_REGISTERED,
    DomainEvent,
    EventDispatcher,
    IEventSink,
    LoggingEventSink,
    MemoryEventSink,
    OutboundEventChannel,
)
from authstate.network import RetryConfig


class FlakySink(IEventSink):
    """Échoue les `failures` premières livraisons."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0
        self.delivered: List[DomainEvent] = []

    async def deliver(self, event: DomainEvent) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("broker unavailable")
        self.delivered.append(event)


class TestChannel:
    def test_publish_queues_event(self) -> None:
        channel = OutboundEventChannel(max_size=10)

        assert channel.publish(DomainEvent(USER_REGISTERED, {"user_id": "u-1"})) is True
        assert channel.pending == 1

    def test_full_queue_drops_and_logs(self, logger, log_lines: List[str]) -> None:
        channel = OutboundEventChannel(max_size=1, logger=logger)
        channel.publish(DomainEvent("a"))

        assert channel.publish(DomainEvent("b")) is False
        assert channel.dropped == 1
        assert channel.pending == 1
        assert json.loads(log_lines[-1])["message"] == "Event queue full, dropping event"

    def test_get_nowait_empty(self) -> None:
        assert OutboundEventChannel().get_nowait() is None


class TestDispatcherDrain:
    @pytest.mark.asyncio
    async def test_drain_delivers_in_order(self) -> None:
        channel = OutboundEventChannel()
        sink = MemoryEventSink()
        dispatcher = EventDispatcher(channel, sink)
        for name in ("a", "b", "c"):
            channel.publish(DomainEvent(name))

        assert await dispatcher.drain() == 3

        assert [e.name for e in sink.events] == ["a", "b", "c"]
        assert dispatcher.delivered == 3
        assert channel.pending == 0

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self) -> None:
        channel = OutboundEventChannel()
        sink = FlakySink(failures=2)
        dispatcher = EventDispatcher(channel, sink)
        channel.publish(DomainEvent("a"))

        with patch("asyncio.sleep", new_callable=AsyncMock):
            await dispatcher.drain()

        assert sink.calls == 3
        assert len(sink.delivered) == 1
        assert dispatcher.failed == 0

    @pytest.mark.asyncio
    async def test_persistent_failure_counted_and_logged(self, logger, log_lines: List[str]) -> None:
        channel = OutboundEventChannel()
        dispatcher = EventDispatcher(
            channel,
            FlakySink(failures=10),
            retry_config=RetryConfig(max_attempts=2, initial_delay=0.01, retryable_exceptions=(Exception,)),
            logger=logger,
        )
        channel.publish(DomainEvent("a"))

        with patch("asyncio.sleep", new_callable=AsyncMock):
            assert await dispatcher.drain() == 1

        assert dispatcher.failed == 1
        entry = json.loads(log_lines[-1])
        assert entry["message"] == "Event delivery failed"
        assert entry["extra"]["attempts"] == 2


class TestDispatcherWorker:
    @pytest.mark.asyncio
    async def test_worker_delivers_then_stops(self) -> None:
        channel = OutboundEventChannel()
        sink = MemoryEventSink()
        dispatcher = EventDispatcher(channel, sink)

        dispatcher.start()
        assert dispatcher.running is True
        channel.publish(DomainEvent("a"))
        channel.publish(DomainEvent("b"))

        await asyncio.wait_for(channel.join(), timeout=1.0)
        await dispatcher.stop()

        assert [e.name for e in sink.events] == ["a", "b"]
        assert dispatcher.running is False

    @pytest.mark.asyncio
    async def test_stop_without_start(self) -> None:
        dispatcher = EventDispatcher(OutboundEventChannel(), MemoryEventSink())

        await dispatcher.stop()

        assert dispatcher.running is False

    @pytest.mark.asyncio
    async def test_stop_without_start_delivers_queued_events(self) -> None:
        channel = OutboundEventChannel()
        sink = MemoryEventSink()
        dispatcher = EventDispatcher(channel, sink)
        channel.publish(DomainEvent("a"))
        channel.publish(DomainEvent("b"))

        await dispatcher.stop()

        assert [e.name for e in sink.events] == ["a", "b"]
        assert channel.pending == 0

    @pytest.mark.asyncio
    async def test_stop_without_drain_keeps_queue(self) -> None:
        channel = OutboundEventChannel()
        sink = MemoryEventSink()
        dispatcher = EventDispatcher(channel, sink)
        channel.publish(DomainEvent("a"))

        await dispatcher.stop(drain=False)

        assert sink.events == []
        assert channel.pending == 1


class TestSinks:
    @pytest.mark.asyncio
    async def test_logging_sink_masks_payload(self, logger, log_lines: List[str]) -> None:
        sink = LoggingEventSink(logger)

        await sink.deliver(DomainEvent("user.password_reset_requested", {"user_id": "u-1", "reset_token": "eyJ"}))

        entry = json.loads(log_lines[-1])
        assert entry["extra"]["event_name"] == "user.password_reset_requested"
        assert entry["extra"]["payload"] == {"user_id": "u-1", "reset_token": "***MASKED***"}

    @pytest.mark.asyncio
    async def test_memory_sink_named(self) -> None:
        sink = MemoryEventSink()
        await sink.deliver(DomainEvent("a"))
        await sink.deliver(DomainEvent("b"))

        assert [e.name for e in sink.named("b")] == ["b"]
