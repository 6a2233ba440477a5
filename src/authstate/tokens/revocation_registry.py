"""
AuthState - Revocation Registry

Blacklist en stockage partagé: une révocation est visible immédiatement
par toutes les instances. Chaque tombstone expire avec le token qu'il
révoque, la blacklist ne grossit donc pas indéfiniment.
"""

from ..core.crypto_provider import token_digest
from ..storage.interfaces import IKeyValueStore
from .interfaces import IRevocationRegistry

BLACKLIST_PREFIX = "token:blacklist:"


def blacklist_key(digest: str) -> str:
    return f"{BLACKLIST_PREFIX}{digest}"


class RevocationRegistry(IRevocationRegistry):
    """
    Tombstones token:blacklist:{sha256(token)} = "1".

    Idempotent: révoquer deux fois réécrit la même clé avec un TTL
    au plus égal à la durée de vie restante du token.
    """

    TOMBSTONE_VALUE = "1"

    def __init__(self, store: IKeyValueStore) -> None:
        self._store = store

    async def revoke(self, token: str, remaining_ttl_seconds: int) -> bool:
        return await self.revoke_digest(token_digest(token), remaining_ttl_seconds)

    async def revoke_digest(self, digest: str, remaining_ttl_seconds: int) -> bool:
        if remaining_ttl_seconds <= 0:
            # Token déjà expiré: il ne sera plus jamais accepté
            return True
        await self._store.set(
            blacklist_key(digest),
            self.TOMBSTONE_VALUE,
            ttl_seconds=int(remaining_ttl_seconds),
        )
        return True

    async def is_revoked(self, token: str) -> bool:
        return await self._store.exists(blacklist_key(token_digest(token)))
