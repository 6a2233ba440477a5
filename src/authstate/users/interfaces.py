"""
AuthState - User Interfaces

Frontières vers la persistance des comptes et le hachage des mots de passe.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .models import User


class IUserRepository(ABC):
    """Persistance des comptes utilisateurs."""

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        """Recherche par email normalisé."""
        pass

    @abstractmethod
    async def save(self, user: User) -> User:
        """
        Crée ou met à jour.

        Raises:
            AlreadyExistsError: Email déjà utilisé par un autre compte
        """
        pass


class IPasswordHasher(ABC):
    """Hachage des mots de passe."""

    @abstractmethod
    async def hash(self, password: str) -> str:
        pass

    @abstractmethod
    async def compare(self, password: str, password_hash: str) -> bool:
        """Comparaison en temps constant. False si hash illisible."""
        pass
