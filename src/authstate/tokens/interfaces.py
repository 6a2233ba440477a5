"""
AuthState - Token Interfaces

Tokens porteurs signés (access / refresh), blacklist de révocation
et métadonnées d'émission permettant la révocation en masse.

Cycle de vie: Issued -> Valid -> {Expired | Revoked} -> Unusable
"""

import json
import math
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class TokenType(str, Enum):
    """Types de tokens."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass(frozen=True)
class TokenPayload:
    """
    Contenu signé d'un token.

    expires_at est renseigné par le codec à la vérification.
    token_id (jti) est unique par émission: deux tokens émis
    dans la même seconde pour le même utilisateur diffèrent.
    """

    subject: str
    token_type: TokenType
    issued_at: datetime
    expires_at: Optional[datetime] = None
    session_id: Optional[str] = None
    token_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    claims: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.subject:
            raise ValueError("subject cannot be empty")

    def remaining_seconds(self, now: datetime) -> int:
        """Secondes avant expiration naturelle (arrondi supérieur, 0 si expiré)."""
        if self.expires_at is None:
            return 0
        remaining = (self.expires_at - now).total_seconds()
        return math.ceil(remaining) if remaining > 0 else 0

    @property
    def purpose(self) -> Optional[str]:
        return self.claims.get("purpose")


@dataclass(frozen=True)
class TokenPair:
    """Paire access + refresh liée à une session."""

    access_token: str
    refresh_token: str
    expires_in: int


@dataclass(frozen=True)
class TokenMetadata:
    """
    Trace d'émission stockée sous token:metadata:{userId}:{digest}.

    Format JSON: {userId, tokenType, createdAt, expiresAt}
    """

    user_id: str
    token_type: TokenType
    created_at: datetime
    expires_at: datetime

    def to_json(self) -> str:
        return json.dumps(
            {
                "userId": self.user_id,
                "tokenType": self.token_type.value,
                "createdAt": self.created_at.isoformat(),
                "expiresAt": self.expires_at.isoformat(),
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> "TokenMetadata":
        """
        Raises:
            ValueError: JSON invalide ou champ manquant
        """
        try:
            data = json.loads(raw)
            return cls(
                user_id=data["userId"],
                token_type=TokenType(data["tokenType"]),
                created_at=datetime.fromisoformat(data["createdAt"]),
                expires_at=datetime.fromisoformat(data["expiresAt"]),
            )
        except (KeyError, TypeError, json.JSONDecodeError) as e:
            raise ValueError(f"Invalid token metadata: {e}") from e


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class ITokenCodec(ABC):
    """Signature et vérification des tokens. Pur, sans I/O."""

    @abstractmethod
    def sign(self, payload: TokenPayload, ttl_seconds: int) -> str:
        """
        Signe un payload, exp = issued_at + ttl_seconds.

        Raises:
            ValueError: ttl_seconds <= 0 ou claim réservé dans payload.claims
        """
        pass

    @abstractmethod
    def verify(self, token: str) -> TokenPayload:
        """
        Vérifie signature et expiration.

        Raises:
            TokenExpiredError: Expiration naturelle atteinte
            TokenInvalidError: Signature invalide, token malformé, claim manquant
        """
        pass


class IRevocationRegistry(ABC):
    """Blacklist des tokens révoqués (tombstones auto-expirants)."""

    @abstractmethod
    async def revoke(self, token: str, remaining_ttl_seconds: int) -> bool:
        """
        Écrit le tombstone pour la durée de vie restante du token.

        Returns:
            True; rien n'est écrit si remaining_ttl_seconds <= 0 (token expiré)
        """
        pass

    @abstractmethod
    async def revoke_digest(self, digest: str, remaining_ttl_seconds: int) -> bool:
        """Variante par empreinte (révocation depuis les métadonnées)."""
        pass

    @abstractmethod
    async def is_revoked(self, token: str) -> bool:
        pass


class ITokenService(ABC):
    """Émission, validation et révocation des tokens."""

    @property
    @abstractmethod
    def access_token_ttl(self) -> int:
        """Durée de vie des access tokens (secondes)."""
        pass

    @abstractmethod
    async def issue_access_token(
        self,
        user_id: str,
        extra_claims: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> str:
        pass

    @abstractmethod
    async def issue_refresh_token(
        self,
        user_id: str,
        extra_claims: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> str:
        pass

    @abstractmethod
    async def issue_token_pair(
        self,
        user_id: str,
        session_id: str,
        extra_claims: Optional[Dict[str, Any]] = None,
    ) -> TokenPair:
        pass

    @abstractmethod
    async def validate(self, token: str, expected_type: TokenType) -> TokenPayload:
        """
        Ordre: signature/expiration, puis révocation, puis type.

        Raises:
            TokenInvalidError, TokenExpiredError, TokenRevokedError, TokenWrongTypeError
        """
        pass

    @abstractmethod
    async def revoke(self, token: str) -> bool:
        pass

    @abstractmethod
    async def revoke_all_for_user(self, user_id: str) -> int:
        pass
