"""
Storage: stockage clé/valeur partagé (mémoire, Redis, borne de délai).
"""

from .interfaces import IKeyValueStore
from .memory_store import MemoryKeyValueStore
from .redis_store import RedisKeyValueStore
from .deadline_store import DeadlineKeyValueStore

__all__ = [
    # Interfaces
    "IKeyValueStore",
    # Implementations
    "MemoryKeyValueStore",
    "RedisKeyValueStore",
    "DeadlineKeyValueStore",
]
