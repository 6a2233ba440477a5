"""
AuthState - Memory Key/Value Store

Implémentation en mémoire pour tests et exécution locale.
Les expirations suivent l'horloge injectée (purge paresseuse à la lecture).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from fnmatch import fnmatchcase
from typing import Dict, List, Optional, Sequence, Set, Union

from ..core.clock import Clock, utc_now
from ..errors import StoreError
from .interfaces import IKeyValueStore


@dataclass
class _Entry:
    value: Union[str, Set[str]]
    expires_at: Optional[datetime] = None


class MemoryKeyValueStore(IKeyValueStore):
    """
    Stockage en mémoire (MVP).

    Même sémantique que Redis pour les opérations utilisées:
    SET NX EX, MGET, SCAN MATCH, EXPIRE, SADD/SREM/SMEMBERS.
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._data: Dict[str, _Entry] = {}

    def _live(self, key: str) -> Optional[_Entry]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[datetime]:
        if ttl_seconds is None:
            return None
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        return self._clock() + timedelta(seconds=ttl_seconds)

    def _string(self, key: str) -> Optional[str]:
        entry = self._live(key)
        if entry is None:
            return None
        if not isinstance(entry.value, str):
            raise StoreError(f"WRONGTYPE key {key} holds a set")
        return entry.value

    def _set_of(self, key: str) -> Optional[Set[str]]:
        entry = self._live(key)
        if entry is None:
            return None
        if not isinstance(entry.value, set):
            raise StoreError(f"WRONGTYPE key {key} holds a string")
        return entry.value

    async def get(self, key: str) -> Optional[str]:
        return self._string(key)

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
        only_if_absent: bool = False,
    ) -> bool:
        expires_at = self._expiry(ttl_seconds)
        if only_if_absent and self._live(key) is not None:
            return False
        self._data[key] = _Entry(value=value, expires_at=expires_at)
        return True

    async def delete(self, key: str) -> bool:
        if self._live(key) is None:
            return False
        del self._data[key]
        return True

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None

    async def get_many(self, keys: Sequence[str]) -> List[Optional[str]]:
        return [self._string(key) for key in keys]

    async def scan(self, pattern: str) -> List[str]:
        return [key for key in list(self._data) if fnmatchcase(key, pattern) and self._live(key) is not None]

    async def incr(self, key: str) -> int:
        entry = self._live(key)
        if entry is None:
            self._data[key] = _Entry(value="1")
            return 1
        current = self._string(key)
        try:
            value = int(current) + 1
        except ValueError:
            raise StoreError(f"value at {key} is not an integer") from None
        entry.value = str(value)
        return value

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        entry.expires_at = self._expiry(ttl_seconds)
        return True

    async def ttl(self, key: str) -> Optional[int]:
        entry = self._live(key)
        if entry is None or entry.expires_at is None:
            return None
        return int((entry.expires_at - self._clock()).total_seconds())

    async def sadd(self, key: str, *members: str) -> int:
        current = self._set_of(key)
        if current is None:
            current = set()
            self._data[key] = _Entry(value=current)
        before = len(current)
        current.update(members)
        return len(current) - before

    async def srem(self, key: str, *members: str) -> int:
        current = self._set_of(key)
        if current is None:
            return 0
        before = len(current)
        current.difference_update(members)
        if not current:
            # Redis supprime les ensembles vides
            del self._data[key]
        return before - len(current)

    async def smembers(self, key: str) -> Set[str]:
        current = self._set_of(key)
        return set(current) if current else set()

    async def close(self) -> None:
        pass

    def keys(self) -> List[str]:
        """Clés vivantes (inspection en test)."""
        return [key for key in list(self._data) if self._live(key) is not None]

    def clear(self) -> None:
        self._data.clear()
