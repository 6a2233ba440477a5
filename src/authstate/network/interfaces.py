"""
AuthState - Resilience Interfaces

Retry avec backoff exponentiel pour les opérations best effort
(livraison d'événements) et les opérations en masse qui doivent
aboutir (révocation après réinitialisation du mot de passe).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..errors import StoreError

T = TypeVar("T")


@dataclass
class RetryConfig:
    """
    Configuration des retries.

    Backoff: delay = min(initial_delay * base ^ attempt, max_delay)
    """

    max_attempts: int = 3
    initial_delay: float = 0.5
    max_delay: float = 5.0
    exponential_base: float = 2.0
    retryable_exceptions: tuple = field(
        default_factory=lambda: (StoreError, ConnectionError, TimeoutError)
    )


@dataclass
class RetryResult:
    """Résultat d'une opération avec retry."""

    success: bool
    result: Optional[Any]
    attempts: int
    total_delay: float
    last_error: Optional[Exception]


class IRetryHandler(ABC):
    """Interface gestion retries."""

    @abstractmethod
    async def execute_with_retry(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        config: Optional[RetryConfig] = None,
        **kwargs: Any,
    ) -> RetryResult:
        """
        Exécute func avec retry et backoff exponentiel.

        Returns:
            RetryResult avec succès/échec et détails (ne lève jamais)
        """
        pass

    @abstractmethod
    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        config: Optional[RetryConfig] = None,
        **kwargs: Any,
    ) -> T:
        """
        Exécute func avec retry et retourne son résultat.

        Raises:
            La dernière erreur si toutes les tentatives échouent
            (ou immédiatement si l'erreur n'est pas retryable)
        """
        pass

    @abstractmethod
    def calculate_delay(self, attempt: int, config: RetryConfig) -> float:
        """Calcule le délai avant la tentative suivante (attempt 0-indexed)."""
        pass

    @abstractmethod
    def is_retryable(self, error: Exception, config: RetryConfig) -> bool:
        pass
