"""
AuthState - Core Interfaces

Configuration immuable et contrats de chargement / cryptographie.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class SigningAlgorithm(str, Enum):
    HS256 = "HS256"
    ES384 = "ES384"


class AuthConfig(BaseModel):
    """
    Configuration du service, construite une seule fois au démarrage.

    Les durées sont exprimées en secondes.
    """

    model_config = ConfigDict(frozen=True)

    MIN_SECRET_LENGTH: ClassVar[int] = 32

    jwt_secret: Optional[str] = None
    jwt_algorithm: SigningAlgorithm = SigningAlgorithm.HS256
    jwt_private_key: Optional[str] = None
    jwt_issuer: str = "authstate"

    access_token_ttl: int = Field(default=900, gt=0)
    refresh_token_ttl: int = Field(default=604800, gt=0)

    max_failed_login_attempts: int = Field(default=5, ge=1)
    lockout_duration: int = Field(default=1800, gt=0)

    # Limitation par client (IP): tentatives par fenêtre, puis blocage
    rate_limit_enabled: bool = True
    rate_limit_login_max_attempts: int = Field(default=5, ge=1)
    rate_limit_login_window: int = Field(default=60, gt=0)
    rate_limit_login_block: int = Field(default=300, gt=0)
    rate_limit_registration_max_attempts: int = Field(default=3, ge=1)
    rate_limit_registration_window: int = Field(default=3600, gt=0)
    rate_limit_registration_block: int = Field(default=86400, gt=0)
    rate_limit_password_reset_max_attempts: int = Field(default=3, ge=1)
    rate_limit_password_reset_window: int = Field(default=3600, gt=0)
    rate_limit_password_reset_block: int = Field(default=7200, gt=0)

    security_log_ttl: int = Field(default=7776000, gt=0)
    user_cache_ttl: int = Field(default=3600, gt=0)

    redis_url: str = "redis://localhost:6379/0"
    store_operation_timeout: float = Field(default=5.0, gt=0)
    event_queue_size: int = Field(default=1000, gt=0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level == "WARNING":
            level = "WARN"
        if level not in ("DEBUG", "INFO", "WARN", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {value}")
        return level

    @model_validator(mode="after")
    def _check_signing_material(self) -> "AuthConfig":
        if self.jwt_algorithm == SigningAlgorithm.HS256:
            if not self.jwt_secret or len(self.jwt_secret) < self.MIN_SECRET_LENGTH:
                raise ValueError(
                    f"jwt_secret must be at least {self.MIN_SECRET_LENGTH} characters for HS256"
                )
        if self.jwt_algorithm == SigningAlgorithm.ES384 and not self.jwt_private_key:
            raise ValueError("jwt_private_key (PEM) is required for ES384")
        if self.refresh_token_ttl < self.access_token_ttl:
            raise ValueError("refresh_token_ttl must be >= access_token_ttl")
        return self


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IConfigLoader(ABC):
    """Construit la configuration depuis fichier YAML et variables d'environnement."""

    @abstractmethod
    def load(
        self,
        path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> AuthConfig:
        """
        Charge la configuration.

        Raises:
            ConfigError: Fichier illisible ou valeurs invalides
        """
        pass


class ICryptoProvider(ABC):
    """Matériel de clé pour la signature asymétrique des tokens."""

    @abstractmethod
    def signing_key(self) -> Any:
        """Clé privée de signature."""
        pass

    @abstractmethod
    def verification_key(self) -> Any:
        """Clé publique de vérification."""
        pass

    @abstractmethod
    def private_key_pem(self) -> str:
        """Export PEM (PKCS8) de la clé privée."""
        pass
