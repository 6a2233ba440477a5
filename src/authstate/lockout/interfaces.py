"""
AuthState - Lockout Interfaces

Verrouillage temporaire des comptes après échecs de connexion répétés.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class AccountSecurityState:
    """
    État de sécurité porté par le compte utilisateur.

    Invariant: is_locked(now) <=> locked_until défini et locked_until > now
    """

    failed_login_attempts: int = 0
    locked_until: Optional[datetime] = None

    def __post_init__(self):
        if self.failed_login_attempts < 0:
            raise ValueError("failed_login_attempts must be >= 0")

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now


@dataclass(frozen=True)
class LockoutStatus:
    """Résultat d'un échec de connexion."""

    locked: bool
    failed_login_attempts: int
    locked_until: Optional[datetime]
    remaining_attempts: int


class IAccountLockoutPolicy(ABC):
    """
    Politique de verrouillage.

    Mute l'état fourni; la persistance est à la charge de l'appelant.
    """

    @abstractmethod
    def handle_failed_login(self, state: AccountSecurityState) -> LockoutStatus:
        pass

    @abstractmethod
    def handle_successful_login(self, state: AccountSecurityState) -> None:
        pass

    @abstractmethod
    def is_locked(self, state: AccountSecurityState, now: Optional[datetime] = None) -> bool:
        pass
