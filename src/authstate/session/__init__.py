"""
Session: sessions serveur liées au refresh token.
"""

from .interfaces import ISessionStore, SessionRecord
from .session_store import SessionStore, session_key, user_index_key

__all__ = [
    # Interfaces
    "ISessionStore",
    # Data classes
    "SessionRecord",
    # Implementations
    "SessionStore",
    "session_key",
    "user_index_key",
]
