"""
AuthState - Deadline Key/Value Store

Décorateur bornant chaque appel stockage par un délai.
Un dépassement lève StoreTimeoutError: l'écriture a pu avoir lieu ou non,
l'appelant ne doit jamais la considérer comme réussie.
L'annulation par l'appelant se propage telle quelle.
"""

import asyncio
from typing import Any, Awaitable, List, Optional, Sequence, Set

from ..errors import StoreTimeoutError
from .interfaces import IKeyValueStore


class DeadlineKeyValueStore(IKeyValueStore):
    """Applique un timeout (asyncio.wait_for) à chaque opération du store enveloppé."""

    DEFAULT_TIMEOUT: float = 5.0

    def __init__(self, inner: IKeyValueStore, timeout: float = DEFAULT_TIMEOUT) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self._inner = inner
        self._timeout = timeout

    @property
    def inner(self) -> IKeyValueStore:
        return self._inner

    @property
    def timeout(self) -> float:
        return self._timeout

    async def _bounded(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise StoreTimeoutError(operation, self._timeout) from e

    async def get(self, key: str) -> Optional[str]:
        return await self._bounded("get", self._inner.get(key))

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
        only_if_absent: bool = False,
    ) -> bool:
        return await self._bounded(
            "set", self._inner.set(key, value, ttl_seconds=ttl_seconds, only_if_absent=only_if_absent)
        )

    async def delete(self, key: str) -> bool:
        return await self._bounded("delete", self._inner.delete(key))

    async def exists(self, key: str) -> bool:
        return await self._bounded("exists", self._inner.exists(key))

    async def get_many(self, keys: Sequence[str]) -> List[Optional[str]]:
        return await self._bounded("get_many", self._inner.get_many(keys))

    async def scan(self, pattern: str) -> List[str]:
        return await self._bounded("scan", self._inner.scan(pattern))

    async def incr(self, key: str) -> int:
        return await self._bounded("incr", self._inner.incr(key))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return await self._bounded("expire", self._inner.expire(key, ttl_seconds))

    async def ttl(self, key: str) -> Optional[int]:
        return await self._bounded("ttl", self._inner.ttl(key))

    async def sadd(self, key: str, *members: str) -> int:
        return await self._bounded("sadd", self._inner.sadd(key, *members))

    async def srem(self, key: str, *members: str) -> int:
        return await self._bounded("srem", self._inner.srem(key, *members))

    async def smembers(self, key: str) -> Set[str]:
        return await self._bounded("smembers", self._inner.smembers(key))

    async def close(self) -> None:
        await self._inner.close()
