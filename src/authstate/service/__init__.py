"""
Service: flux d'authentification.
"""

from .auth_service import PASSWORD_RESET_PURPOSE, AuthResult, AuthService

__all__ = [
    # Data classes
    "AuthResult",
    "PASSWORD_RESET_PURPOSE",
    # Implementations
    "AuthService",
]
