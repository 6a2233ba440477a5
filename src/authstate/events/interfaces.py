"""
AuthState - Outbound Event Interfaces

Événements domaine poussés par les flux d'authentification
(ex: user.password_reset_requested) et livrés hors du chemin
de la requête par un worker.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from ..core.clock import utc_now

USER_LOGGED_IN = "user.logged_in"
USER_REGISTERED = "user.registered"
USER_PASSWORD_RESET_REQUESTED = "user.password_reset_requested"
USER_PASSWORD_RESET_COMPLETED = "user.password_reset_completed"


@dataclass(frozen=True)
class DomainEvent:
    """Événement sortant typé."""

    name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utc_now)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))


class IEventPublisher(ABC):
    """Publication fire-and-forget (non bloquante)."""

    @abstractmethod
    def publish(self, event: DomainEvent) -> bool:
        """
        Met l'événement en file. Ne lève jamais.

        Returns:
            False si l'événement a été abandonné (file pleine)
        """
        pass


class IEventSink(ABC):
    """Destination finale des événements (bus, mailer, webhook...)."""

    @abstractmethod
    async def deliver(self, event: DomainEvent) -> None:
        """
        Raises:
            Toute erreur de livraison (retentée selon RetryConfig)
        """
        pass
