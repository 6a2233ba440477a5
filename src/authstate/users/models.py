"""
AuthState - User Model

Agrégat utilisateur, normalisation de l'email et politique de mot de passe.
"""

import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..core.clock import utc_now
from ..errors import InvalidInputError
from ..lockout.interfaces import AccountSecurityState

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PASSWORD_MIN_LENGTH = 8


def normalize_email(email: str) -> str:
    """
    Raises:
        InvalidInputError: Email vide ou malformé
    """
    normalized = (email or "").strip().lower()
    if not normalized or len(normalized) > 254 or not EMAIL_PATTERN.match(normalized):
        raise InvalidInputError("Invalid email address")
    return normalized


def validate_password_strength(password: str) -> None:
    """
    Au moins 8 caractères, une majuscule, une minuscule et un chiffre.

    Raises:
        InvalidInputError: Mot de passe trop faible
    """
    if not password or len(password) < PASSWORD_MIN_LENGTH:
        raise InvalidInputError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if not re.search(r"[A-Z]", password):
        raise InvalidInputError("Password must contain an uppercase letter")
    if not re.search(r"[a-z]", password):
        raise InvalidInputError("Password must contain a lowercase letter")
    if not re.search(r"\d", password):
        raise InvalidInputError("Password must contain a digit")


def _iso(moment: Optional[datetime]) -> Optional[str]:
    return moment.isoformat() if moment else None


def _parse(raw: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(raw) if raw else None


@dataclass
class User:
    """
    Compte utilisateur.

    Attributes:
        user_id: Identifiant (uuid4)
        email: Email normalisé (minuscules)
        password_hash: Hash argon2
        is_active: Compte actif
        security: Compteur d'échecs et verrouillage
        roles: Rôles exposés dans l'access token
        created_at: Création
        updated_at: Dernière sauvegarde
        last_login_at: Dernière connexion réussie
    """

    email: str
    password_hash: str
    user_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    is_active: bool = True
    security: AccountSecurityState = field(default_factory=AccountSecurityState)
    roles: list = field(default_factory=lambda: ["user"])
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    last_login_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.user_id,
            "email": self.email,
            "passwordHash": self.password_hash,
            "isActive": self.is_active,
            "failedLoginAttempts": self.security.failed_login_attempts,
            "lockedUntil": _iso(self.security.locked_until),
            "roles": list(self.roles),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "lastLoginAt": _iso(self.last_login_at),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> "User":
        """
        Raises:
            ValueError: JSON invalide ou champ manquant
        """
        try:
            data = json.loads(raw)
            return cls(
                user_id=data["id"],
                email=data["email"],
                password_hash=data["passwordHash"],
                is_active=bool(data.get("isActive", True)),
                security=AccountSecurityState(
                    failed_login_attempts=int(data.get("failedLoginAttempts", 0)),
                    locked_until=_parse(data.get("lockedUntil")),
                ),
                roles=list(data.get("roles") or []),
                created_at=_parse(data["createdAt"]),
                updated_at=_parse(data["updatedAt"]),
                last_login_at=_parse(data.get("lastLoginAt")),
            )
        except (KeyError, TypeError, json.JSONDecodeError) as e:
            raise ValueError(f"Invalid user record: {e}") from e
