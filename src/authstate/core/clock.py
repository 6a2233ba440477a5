"""
AuthState - Horloge injectable

Toutes les expirations (tokens, sessions, verrouillage, TTL mémoire)
sont calculées à partir de la même horloge UTC.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Horloge par défaut: datetime UTC timezone-aware."""
    return datetime.now(timezone.utc)


def to_millis(moment: datetime) -> int:
    """Convertit un datetime en timestamp millisecondes."""
    return int(moment.timestamp() * 1000)


def from_millis(millis: int) -> datetime:
    """Convertit un timestamp millisecondes en datetime UTC."""
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
