"""
Lockout: verrouillage des comptes après échecs de connexion.
"""

from .interfaces import AccountSecurityState, IAccountLockoutPolicy, LockoutStatus
from .account_lockout import AccountLockoutPolicy

__all__ = [
    # Interfaces
    "IAccountLockoutPolicy",
    # Data classes
    "AccountSecurityState",
    "LockoutStatus",
    # Implementations
    "AccountLockoutPolicy",
]
