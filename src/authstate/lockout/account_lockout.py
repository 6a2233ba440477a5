"""
AuthState - Account Lockout Policy

N échecs consécutifs = compte verrouillé pour une durée fixe.

Limite connue: le compteur est un read-modify-write porté par l'enregistrement
utilisateur. Deux échecs simultanés peuvent lire la même valeur et écrire
la même valeur + 1; le verrouillage intervient alors une tentative plus tard.
"""

from datetime import datetime, timedelta
from typing import Optional

from ..core.clock import Clock, utc_now
from .interfaces import AccountSecurityState, IAccountLockoutPolicy, LockoutStatus


class AccountLockoutPolicy(IAccountLockoutPolicy):
    """
    Politique de verrouillage des comptes.

    Example:
        policy = AccountLockoutPolicy(max_failed_attempts=5, lock_duration=1800)
        status = policy.handle_failed_login(user.security)
        if status.locked:
            raise AccountLockedError(status.locked_until)
    """

    MAX_FAILED_ATTEMPTS: int = 5
    LOCK_DURATION_SECONDS: int = 1800

    def __init__(
        self,
        max_failed_attempts: int = MAX_FAILED_ATTEMPTS,
        lock_duration: int = LOCK_DURATION_SECONDS,
        clock: Clock = utc_now,
    ) -> None:
        """
        Args:
            max_failed_attempts: Échecs avant verrouillage (défaut: 5)
            lock_duration: Durée du verrouillage en secondes (défaut: 1800)
            clock: Horloge
        """
        if max_failed_attempts < 1:
            raise ValueError("max_failed_attempts must be >= 1")
        if lock_duration <= 0:
            raise ValueError("lock_duration must be > 0")
        self._max_failed_attempts = max_failed_attempts
        self._lock_duration = timedelta(seconds=lock_duration)
        self._clock = clock

    @property
    def max_failed_attempts(self) -> int:
        return self._max_failed_attempts

    def handle_failed_login(self, state: AccountSecurityState) -> LockoutStatus:
        """
        Enregistre un échec.

        Un verrouillage déjà échu repart de zéro: l'échec courant est le premier
        de la nouvelle série.
        """
        now = self._clock()

        if state.locked_until is not None and state.locked_until <= now:
            state.failed_login_attempts = 0
            state.locked_until = None

        state.failed_login_attempts += 1

        if state.failed_login_attempts >= self._max_failed_attempts:
            state.locked_until = now + self._lock_duration

        return LockoutStatus(
            locked=state.is_locked(now),
            failed_login_attempts=state.failed_login_attempts,
            locked_until=state.locked_until,
            remaining_attempts=max(0, self._max_failed_attempts - state.failed_login_attempts),
        )

    def handle_successful_login(self, state: AccountSecurityState) -> None:
        state.failed_login_attempts = 0
        state.locked_until = None

    def is_locked(self, state: AccountSecurityState, now: Optional[datetime] = None) -> bool:
        return state.is_locked(now or self._clock())

    def remaining_lock_time(self, state: AccountSecurityState) -> timedelta:
        """Temps restant avant déverrouillage (zéro si non verrouillé)."""
        now = self._clock()
        if not state.is_locked(now):
            return timedelta(0)
        return state.locked_until - now

    def unlock(self, state: AccountSecurityState) -> bool:
        """
        Déverrouillage administratif.

        Returns:
            True si le compte était verrouillé
        """
        was_locked = state.is_locked(self._clock())
        state.failed_login_attempts = 0
        state.locked_until = None
        return was_locked
