"""
AuthState - Cached User Repository

Cache write-through dans le stockage partagé:
    user:auth:{userId}   JSON User
    user:email:{email}   userId

Aucune copie locale à l'instance: toutes les instances voient le même
compteur d'échecs. Une lecture de cache en échec retombe sur le dépôt;
une écriture de cache en échec est propagée (cache potentiellement périmé).
"""

from typing import Optional

from ..errors import StoreError
from ..logging.interfaces import IStructuredLogger
from ..logging.structured_logger import StructuredLogger
from ..storage.interfaces import IKeyValueStore
from .interfaces import IUserRepository
from .models import User

USER_CACHE_PREFIX = "user:auth:"
EMAIL_CACHE_PREFIX = "user:email:"


class CachedUserRepository(IUserRepository):
    """Décorateur de cache autour d'un IUserRepository."""

    def __init__(
        self,
        inner: IUserRepository,
        store: IKeyValueStore,
        ttl_seconds: int = 3600,
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        self._inner = inner
        self._store = store
        self._ttl = ttl_seconds
        self._logger = logger or StructuredLogger("authstate.users.cache")

    async def find_by_id(self, user_id: str) -> Optional[User]:
        try:
            raw = await self._store.get(f"{USER_CACHE_PREFIX}{user_id}")
        except StoreError as e:
            self._logger.warn("User cache read failed", user_id=user_id, error=str(e))
            return await self._inner.find_by_id(user_id)

        if raw is not None:
            try:
                return User.from_json(raw)
            except ValueError as e:
                self._logger.warn("Corrupted user cache entry", user_id=user_id, error=str(e))

        user = await self._inner.find_by_id(user_id)
        if user is not None:
            await self._populate(user)
        return user

    async def find_by_email(self, email: str) -> Optional[User]:
        normalized = email.strip().lower()
        try:
            user_id = await self._store.get(f"{EMAIL_CACHE_PREFIX}{normalized}")
        except StoreError as e:
            self._logger.warn("User cache read failed", error=str(e))
            user_id = None

        if user_id is not None:
            user = await self.find_by_id(user_id)
            if user is not None and user.email == normalized:
                return user

        user = await self._inner.find_by_email(normalized)
        if user is not None:
            await self._populate(user)
        return user

    async def save(self, user: User) -> User:
        saved = await self._inner.save(user)
        await self._write_through(saved)
        return saved

    async def _write_through(self, user: User) -> None:
        await self._store.set(f"{USER_CACHE_PREFIX}{user.user_id}", user.to_json(), ttl_seconds=self._ttl)
        await self._store.set(f"{EMAIL_CACHE_PREFIX}{user.email}", user.user_id, ttl_seconds=self._ttl)

    async def _populate(self, user: User) -> None:
        try:
            await self._write_through(user)
        except StoreError as e:
            self._logger.warn("User cache populate failed", user_id=user.user_id, error=str(e))

    async def invalidate(self, user: User) -> None:
        await self._store.delete(f"{USER_CACHE_PREFIX}{user.user_id}")
        await self._store.delete(f"{EMAIL_CACHE_PREFIX}{user.email}")
