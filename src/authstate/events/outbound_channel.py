"""
AuthState - Outbound Event Channel

File bornée (asyncio.Queue) remplie par les flux d'authentification,
vidée par un EventDispatcher qui livre vers un IEventSink avec retry.
La latence de livraison n'impacte jamais la requête.
"""

import asyncio
from typing import List, Optional

from ..logging.interfaces import IStructuredLogger
from ..logging.structured_logger import StructuredLogger
from ..network.interfaces import IRetryHandler, RetryConfig
from ..network.retry_handler import RetryHandler
from .interfaces import DomainEvent, IEventPublisher, IEventSink


class OutboundEventChannel(IEventPublisher):
    """
    File d'événements sortants.

    File pleine: l'événement est abandonné et journalisé (consommateur lent).
    """

    DEFAULT_MAX_SIZE: int = 1000

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE, logger: Optional[IStructuredLogger] = None) -> None:
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self._logger = logger or StructuredLogger("authstate.events")
        self._dropped = 0

    def publish(self, event: DomainEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._dropped += 1
            self._logger.warn("Event queue full, dropping event", event_name=event.name, event_id=event.event_id)
            return False
        return True

    async def get(self) -> DomainEvent:
        return await self._queue.get()

    def get_nowait(self) -> Optional[DomainEvent]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def dropped(self) -> int:
        return self._dropped


class LoggingEventSink(IEventSink):
    """Sink par défaut: écrit chaque événement dans le logger structuré."""

    def __init__(self, logger: Optional[IStructuredLogger] = None) -> None:
        self._logger = logger or StructuredLogger("authstate.events.sink")

    async def deliver(self, event: DomainEvent) -> None:
        self._logger.info(
            "Domain event",
            event_name=event.name,
            event_id=event.event_id,
            payload=event.payload,
        )


class MemoryEventSink(IEventSink):
    """Sink en mémoire (tests, exécution locale)."""

    def __init__(self) -> None:
        self.events: List[DomainEvent] = []

    async def deliver(self, event: DomainEvent) -> None:
        self.events.append(event)

    def named(self, name: str) -> List[DomainEvent]:
        return [e for e in self.events if e.name == name]


class EventDispatcher:
    """
    Worker de livraison.

    Example:
        dispatcher = EventDispatcher(channel, LoggingEventSink())
        dispatcher.start()
        ...
        await dispatcher.stop()
    """

    def __init__(
        self,
        channel: OutboundEventChannel,
        sink: IEventSink,
        retry_handler: Optional[IRetryHandler] = None,
        retry_config: Optional[RetryConfig] = None,
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        self._channel = channel
        self._sink = sink
        self._retry = retry_handler or RetryHandler()
        self._retry_config = retry_config or RetryConfig(
            retryable_exceptions=(Exception,),
        )
        self._logger = logger or StructuredLogger("authstate.events.dispatcher")
        self._task: Optional[asyncio.Task] = None
        self._delivered = 0
        self._failed = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def delivered(self) -> int:
        return self._delivered

    @property
    def failed(self) -> int:
        return self._failed

    def start(self) -> None:
        """Démarre le worker dans la boucle courante."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self, drain: bool = True, timeout: float = 5.0) -> None:
        """
        Arrête le worker.

        Args:
            drain: Livrer les événements en file (directement si le worker
                n'a jamais démarré)
            timeout: Attente max du drainage par le worker (secondes)
        """
        if self._task is None:
            if drain:
                await self.drain()
            return
        if drain:
            try:
                await asyncio.wait_for(self._channel.join(), timeout=timeout)
            except asyncio.TimeoutError:
                self._logger.warn("Event dispatcher stopped with pending events", pending=self._channel.pending)
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def drain(self) -> int:
        """
        Livre tous les événements en file sans worker (tests, arrêt).

        Returns:
            Nombre d'événements traités
        """
        processed = 0
        while True:
            event = self._channel.get_nowait()
            if event is None:
                return processed
            try:
                await self._deliver(event)
            finally:
                self._channel.task_done()
            processed += 1

    async def _run(self) -> None:
        while True:
            event = await self._channel.get()
            try:
                await self._deliver(event)
            finally:
                self._channel.task_done()

    async def _deliver(self, event: DomainEvent) -> None:
        result = await self._retry.execute_with_retry(self._sink.deliver, event, config=self._retry_config)
        if result.success:
            self._delivered += 1
            return
        self._failed += 1
        self._logger.error(
            "Event delivery failed",
            event_name=event.name,
            event_id=event.event_id,
            attempts=result.attempts,
            error=str(result.last_error),
        )
