"""
AuthState - Session Interfaces

Sessions serveur liées au refresh token: une session vit au plus
aussi longtemps que le refresh token émis (ou ré-émis) pour elle.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class SessionRecord:
    """
    Session utilisateur.

    Attributes:
        session_id: Identifiant opaque (uuid4)
        user_id: Utilisateur propriétaire
        created_at: Création
        last_accessed_at: Dernier accès (refresh, update)
        expires_at: Fin de vie, alignée sur le refresh token courant
        ip: Adresse client à la création / dernière mise à jour
        user_agent: Agent client
        data: Données applicatives libres
    """

    session_id: str
    user_id: str
    created_at: datetime
    last_accessed_at: datetime
    expires_at: datetime
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_json(self) -> str:
        return json.dumps(
            {
                "id": self.session_id,
                "userId": self.user_id,
                "createdAt": self.created_at.isoformat(),
                "lastAccessedAt": self.last_accessed_at.isoformat(),
                "expiresAt": self.expires_at.isoformat(),
                "ip": self.ip,
                "userAgent": self.user_agent,
                "data": self.data,
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> "SessionRecord":
        """
        Raises:
            ValueError: JSON invalide ou champ manquant
        """
        try:
            data = json.loads(raw)
            return cls(
                session_id=data["id"],
                user_id=data["userId"],
                created_at=datetime.fromisoformat(data["createdAt"]),
                last_accessed_at=datetime.fromisoformat(data["lastAccessedAt"]),
                expires_at=datetime.fromisoformat(data["expiresAt"]),
                ip=data.get("ip"),
                user_agent=data.get("userAgent"),
                data=data.get("data") or {},
            )
        except (KeyError, TypeError, json.JSONDecodeError) as e:
            raise ValueError(f"Invalid session record: {e}") from e


class ISessionStore(ABC):
    """Cycle de vie des sessions."""

    @abstractmethod
    async def create(
        self,
        user_id: str,
        data: Optional[Dict[str, Any]] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        """
        Crée une session (TTL = durée de vie du refresh token).

        Returns:
            session_id
        """
        pass

    @abstractmethod
    async def get(self, session_id: str) -> SessionRecord:
        """
        Lecture sans renouvellement.

        Raises:
            SessionNotFoundError: Session inexistante ou expirée
        """
        pass

    @abstractmethod
    async def update(self, session_id: str, partial: Dict[str, Any]) -> bool:
        """
        Fusionne data/ip/user_agent sans repousser expires_at.

        Returns:
            False si la session n'existe pas ou a expiré
        """
        pass

    @abstractmethod
    async def touch(self, session_id: str) -> bool:
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        pass

    @abstractmethod
    async def find_by_user(self, user_id: str) -> List[str]:
        pass

    @abstractmethod
    async def get_user_sessions(self, user_id: str) -> List[SessionRecord]:
        pass

    @abstractmethod
    async def delete_all_for_user(self, user_id: str, except_session_id: Optional[str] = None) -> int:
        pass
