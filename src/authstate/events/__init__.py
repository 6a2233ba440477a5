"""
Events: canal d'événements sortants et worker de livraison.
"""

from .interfaces import (
    USER_LOGGED_IN,
    USER_PASSWORD_RESET_COMPLETED,
    USER_PASSWORD_RESET_REQUESTED,
    USER_REGISTERED,
    DomainEvent,
    IEventPublisher,
    IEventSink,
)
from .outbound_channel import EventDispatcher, LoggingEventSink, MemoryEventSink, OutboundEventChannel

__all__ = [
    # Interfaces
    "IEventPublisher",
    "IEventSink",
    # Data classes
    "DomainEvent",
    "USER_LOGGED_IN",
    "USER_REGISTERED",
    "USER_PASSWORD_RESET_REQUESTED",
    "USER_PASSWORD_RESET_COMPLETED",
    # Implementations
    "OutboundEventChannel",
    "EventDispatcher",
    "LoggingEventSink",
    "MemoryEventSink",
]
