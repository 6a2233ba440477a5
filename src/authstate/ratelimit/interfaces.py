"""
AuthState - Rate Limit Interfaces

Limitation des tentatives par client (adresse IP) sur les actions
exposées aux attaques par force brute: connexion, inscription,
demande de réinitialisation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class RateLimitAction(str, Enum):
    LOGIN = "login"
    REGISTRATION = "registration"
    PASSWORD_RESET = "password-reset"


@dataclass(frozen=True)
class RateLimitOptions:
    """
    Fenêtre fixe: au plus max_attempts requêtes par window_seconds,
    puis blocage du client pendant block_seconds.
    """

    max_attempts: int
    window_seconds: int
    block_seconds: int

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.window_seconds <= 0 or self.block_seconds <= 0:
            raise ValueError("window_seconds and block_seconds must be > 0")


class IRateLimiter(ABC):
    """
    Compteurs en stockage partagé, visibles par toutes les instances.

    Les erreurs de stockage ne bloquent jamais une requête: elles sont
    journalisées et la requête est autorisée.
    """

    @abstractmethod
    async def is_rate_limited(self, key: str, action: RateLimitAction) -> bool:
        """
        True si le client est bloqué ou a épuisé sa fenêtre.

        Épuiser la fenêtre pose le blocage (block_seconds).
        """
        pass

    @abstractmethod
    async def increment(self, key: str, action: RateLimitAction) -> int:
        """
        Compte une requête. La fenêtre démarre à la première.

        Returns:
            Nombre de requêtes dans la fenêtre (0 si le stockage a échoué)
        """
        pass

    @abstractmethod
    async def reset(self, key: str, action: RateLimitAction) -> bool:
        """Efface compteur et blocage. False si le stockage a échoué."""
        pass

    @abstractmethod
    async def hit(self, key: str, action: RateLimitAction) -> None:
        """
        Vérifie puis compte une requête.

        Raises:
            RateLimitExceededError: Client bloqué
        """
        pass
