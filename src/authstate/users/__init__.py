"""
Users: comptes, politique de mot de passe, hachage et persistance.
"""

from .interfaces import IPasswordHasher, IUserRepository
from .models import User, normalize_email, validate_password_strength
from .password_hasher import Argon2PasswordHasher
from .memory_repository import MemoryUserRepository
from .cached_repository import CachedUserRepository

__all__ = [
    # Interfaces
    "IUserRepository",
    "IPasswordHasher",
    # Data classes
    "User",
    # Implementations
    "Argon2PasswordHasher",
    "MemoryUserRepository",
    "CachedUserRepository",
    "normalize_email",
    "validate_password_strength",
]
