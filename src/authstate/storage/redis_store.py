"""
AuthState - Redis Key/Value Store

Implémentation partagée entre instances, basée sur redis.asyncio.
Les erreurs du client sont traduites en StoreError.
"""

from typing import Any, Awaitable, List, Optional, Sequence, Set

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..errors import StoreError, StoreTimeoutError, StoreUnavailableError
from .interfaces import IKeyValueStore


class RedisKeyValueStore(IKeyValueStore):
    """
    Stockage Redis.

    Raises (toutes méthodes):
        StoreUnavailableError: Connexion impossible ou perdue
        StoreTimeoutError: Timeout socket (résultat inconnu)
        StoreError: Autre erreur Redis
    """

    SCAN_COUNT: int = 500

    def __init__(
        self,
        redis_url: str,
        *,
        socket_timeout: float = 5.0,
        client: Optional[aioredis.Redis] = None,
    ) -> None:
        """
        Args:
            redis_url: URL redis://
            socket_timeout: Timeout connexion et lecture (secondes)
            client: Client existant (sinon créé depuis l'URL)
        """
        self.redis_url = redis_url
        self._socket_timeout = socket_timeout
        self.client = client or aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except RedisTimeoutError as e:
            raise StoreTimeoutError(operation, self._socket_timeout) from e
        except RedisConnectionError as e:
            raise StoreUnavailableError(f"Redis unavailable during {operation}: {e}") from e
        except RedisError as e:
            raise StoreError(f"Redis error during {operation}: {e}") from e

    async def ping(self) -> bool:
        return bool(await self._call("ping", self.client.ping()))

    async def get(self, key: str) -> Optional[str]:
        return await self._call("get", self.client.get(key))

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
        only_if_absent: bool = False,
    ) -> bool:
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        result = await self._call(
            "set",
            self.client.set(key, value, ex=ttl_seconds, nx=only_if_absent),
        )
        # SET NX renvoie None quand la clé existe déjà
        return bool(result)

    async def delete(self, key: str) -> bool:
        return await self._call("delete", self.client.delete(key)) > 0

    async def exists(self, key: str) -> bool:
        return await self._call("exists", self.client.exists(key)) > 0

    async def get_many(self, keys: Sequence[str]) -> List[Optional[str]]:
        if not keys:
            return []
        return list(await self._call("mget", self.client.mget(list(keys))))

    async def scan(self, pattern: str) -> List[str]:
        async def collect() -> List[str]:
            return [key async for key in self.client.scan_iter(match=pattern, count=self.SCAN_COUNT)]

        return await self._call("scan", collect())

    async def incr(self, key: str) -> int:
        return int(await self._call("incr", self.client.incr(key)))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        return bool(await self._call("expire", self.client.expire(key, ttl_seconds)))

    async def ttl(self, key: str) -> Optional[int]:
        remaining = await self._call("ttl", self.client.ttl(key))
        # -2: clé absente, -1: pas d'expiration
        return remaining if remaining >= 0 else None

    async def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return await self._call("sadd", self.client.sadd(key, *members))

    async def srem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return await self._call("srem", self.client.srem(key, *members))

    async def smembers(self, key: str) -> Set[str]:
        return set(await self._call("smembers", self.client.smembers(key)))

    async def close(self) -> None:
        await self.client.aclose()
