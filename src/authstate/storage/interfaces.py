"""
AuthState - Storage Interfaces

Contrat du stockage clé/valeur partagé par toutes les instances:
tombstones de révocation, métadonnées de tokens, sessions,
journal de sécurité et cache utilisateur.

Seules les primitives mono-clé sont atomiques; les opérations
multi-clés sont des séquences best effort.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Set


class IKeyValueStore(ABC):
    """
    Stockage clé/valeur avec TTL.

    Toutes les méthodes peuvent lever StoreError (StoreUnavailableError,
    StoreTimeoutError). Un timeout a un résultat inconnu.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Valeur ou None si absente/expirée."""
        pass

    @abstractmethod
    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
        only_if_absent: bool = False,
    ) -> bool:
        """
        Écrit une valeur.

        Args:
            key: Clé
            value: Valeur (chaîne, JSON pour les structures)
            ttl_seconds: Durée de vie (> 0) ou None pour aucune expiration
            only_if_absent: N'écrit que si la clé n'existe pas

        Returns:
            True si écrit, False si only_if_absent et clé existante

        Raises:
            ValueError: ttl_seconds <= 0
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """True si la clé existait."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def get_many(self, keys: Sequence[str]) -> List[Optional[str]]:
        """Lecture groupée, résultats dans l'ordre des clés."""
        pass

    @abstractmethod
    async def scan(self, pattern: str) -> List[str]:
        """Clés correspondant au motif glob (`*`, `?`)."""
        pass

    @abstractmethod
    async def incr(self, key: str) -> int:
        """
        Incrément atomique d'un compteur (créé à 0 si absent).

        Le TTL existant est conservé.

        Returns:
            Nouvelle valeur
        """
        pass

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Redéfinit le TTL. False si la clé n'existe pas."""
        pass

    @abstractmethod
    async def ttl(self, key: str) -> Optional[int]:
        """TTL restant en secondes, None si clé absente ou sans expiration."""
        pass

    @abstractmethod
    async def sadd(self, key: str, *members: str) -> int:
        """Ajoute des membres à un ensemble. Retourne le nombre ajouté."""
        pass

    @abstractmethod
    async def srem(self, key: str, *members: str) -> int:
        """Retire des membres d'un ensemble. Retourne le nombre retiré."""
        pass

    @abstractmethod
    async def smembers(self, key: str) -> Set[str]:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass
