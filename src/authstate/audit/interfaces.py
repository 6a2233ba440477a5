"""
AuthState - Security Event Interfaces

Journal des transitions d'état sensibles (connexions, révocations,
verrouillages, mots de passe, sessions) pour l'audit.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..core.clock import from_millis, to_millis


class SecurityEventType(str, Enum):
    """Types d'événements de sécurité."""

    # Authentification
    LOGIN_ATTEMPT = "login_attempt"
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILURE = "login_failure"
    LOGOUT = "logout"

    # Tokens
    TOKEN_CREATED = "token_created"
    TOKEN_REFRESHED = "token_refreshed"
    TOKEN_REVOKED = "token_revoked"
    TOKEN_EXPIRED = "token_expired"

    # Compte
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNLOCKED = "account_unlocked"

    # Mot de passe
    PASSWORD_CHANGED = "password_changed"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    PASSWORD_RESET_COMPLETED = "password_reset_completed"

    # Sessions
    SESSION_CREATED = "session_created"
    SESSION_TERMINATED = "session_terminated"
    SESSION_EXPIRED = "session_expired"
    ALL_SESSIONS_TERMINATED = "all_sessions_terminated"

    # Accès
    UNAUTHORIZED_ACCESS = "unauthorized_access"
    PERMISSION_VIOLATION = "permission_violation"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    SECURITY_BREACH = "security_breach"


class SecurityEventSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


AUTHENTICATION_EVENTS = frozenset(
    {
        SecurityEventType.LOGIN_ATTEMPT,
        SecurityEventType.LOGIN_SUCCESS,
        SecurityEventType.LOGIN_FAILURE,
        SecurityEventType.LOGOUT,
    }
)

PASSWORD_EVENTS = frozenset(
    {
        SecurityEventType.PASSWORD_CHANGED,
        SecurityEventType.PASSWORD_RESET_REQUESTED,
        SecurityEventType.PASSWORD_RESET_COMPLETED,
    }
)

ACCESS_EVENTS = frozenset(
    {
        SecurityEventType.UNAUTHORIZED_ACCESS,
        SecurityEventType.PERMISSION_VIOLATION,
        SecurityEventType.RATE_LIMIT_EXCEEDED,
        SecurityEventType.SECURITY_BREACH,
    }
)


@dataclass(frozen=True)
class SecurityEvent:
    """
    Événement de sécurité enregistré.

    Attributes:
        type: Type d'événement
        severity: Sévérité (calculée, jamais choisie par l'appelant)
        timestamp: Horodatage (résolution milliseconde)
        data: user_id, email, ip, user_agent, session_id, success, reason...
    """

    type: SecurityEventType
    severity: SecurityEventSeverity
    timestamp: datetime
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> Optional[str]:
        return self.data.get("user_id")

    def to_json(self) -> str:
        return json.dumps(
            {
                "type": self.type.value,
                "severity": self.severity.value,
                "timestamp": to_millis(self.timestamp),
                "data": self.data,
            },
            default=str,
        )

    @classmethod
    def from_json(cls, raw: str) -> "SecurityEvent":
        """
        Raises:
            ValueError: JSON invalide, type ou sévérité inconnus
        """
        try:
            data = json.loads(raw)
            return cls(
                type=SecurityEventType(data["type"]),
                severity=SecurityEventSeverity(data["severity"]),
                timestamp=from_millis(int(data["timestamp"])),
                data=data.get("data") or {},
            )
        except (KeyError, TypeError, json.JSONDecodeError) as e:
            raise ValueError(f"Invalid security event: {e}") from e


class ISecurityEventRecorder(ABC):
    """Enregistrement et consultation des événements de sécurité."""

    @abstractmethod
    async def record(
        self,
        event_type: SecurityEventType,
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[SecurityEvent]:
        """
        Enregistre un événement (best effort).

        Returns:
            L'événement enregistré, None si le stockage a échoué
        """
        pass

    @abstractmethod
    async def query(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        event_types: Optional[Sequence[SecurityEventType]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[SecurityEvent]:
        """Événements d'un utilisateur, les plus récents d'abord."""
        pass

    @abstractmethod
    async def count_by_type(
        self,
        user_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[SecurityEventType, int]:
        pass
