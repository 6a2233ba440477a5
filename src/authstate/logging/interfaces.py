"""
AuthState - Logging Interfaces

Logging structuré JSON:
- Champs obligatoires: timestamp, level, correlation_id, logger, message
- Timestamp ISO 8601 UTC avec millisecondes
- Niveaux: DEBUG, INFO, WARN, ERROR, CRITICAL
- Mots de passe, tokens et secrets jamais en clair
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class LogLevel(Enum):
    """Ordre de sévérité: DEBUG < INFO < WARN < ERROR < CRITICAL"""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def get_priority(cls, level: "LogLevel") -> int:
        priorities = {
            cls.DEBUG: 0,
            cls.INFO: 1,
            cls.WARN: 2,
            cls.ERROR: 3,
            cls.CRITICAL: 4,
        }
        return priorities.get(level, 0)

    @classmethod
    def from_name(cls, name: str) -> "LogLevel":
        """Accepte aussi WARNING (nom du module logging standard)."""
        normalized = name.strip().upper()
        if normalized == "WARNING":
            normalized = "WARN"
        return cls(normalized)


@dataclass
class LogEntry:
    """Entrée de log avec champs obligatoires."""

    timestamp: str
    level: LogLevel
    correlation_id: str
    message: str
    extra: Dict[str, Any] = field(default_factory=dict)
    logger_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "correlation_id": self.correlation_id,
            "logger": self.logger_name,
            "message": self.message,
        }
        if self.extra:
            result["extra"] = self.extra
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


@dataclass
class LogConfig:
    """Configuration du logger structuré."""

    min_level: LogLevel = LogLevel.INFO
    include_extra: bool = True
    mask_sensitive: bool = True
    default_correlation_id: Optional[str] = None
    # Entrées gardées en mémoire (0 = aucune)
    retained_entries: int = 1000


class IStructuredLogger(ABC):
    """Interface logger structuré."""

    @abstractmethod
    def log(
        self,
        level: LogLevel,
        message: str,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> Optional[LogEntry]:
        """
        Log structuré JSON.

        Returns:
            LogEntry créé ou None si filtré par niveau
        """
        pass

    @abstractmethod
    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        pass

    @abstractmethod
    def get_entries(self) -> List[LogEntry]:
        """Retourne les entrées de log capturées (pour tests)."""
        pass


class ISensitiveMasker(ABC):
    """Interface masquage données sensibles."""

    SENSITIVE_PATTERNS: List[str] = [
        "password",
        "passwd",
        "token",
        "secret",
        "private_key",
        "api_key",
        "credential",
        "authorization",
        "bearer",
        "jwt",
        "cookie",
        "hash",
    ]

    # Clés contenant un pattern mais ne portant aucune valeur secrète
    SAFE_KEYS: FrozenSet[str] = frozenset(
        {
            "token_type",
            "tokens_revoked",
            "tokens_failed",
            "access_token_ttl",
            "refresh_token_ttl",
        }
    )

    MASK_VALUE: str = "***MASKED***"

    @abstractmethod
    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Masque données sensibles dans un dictionnaire.

        Returns:
            Copie avec données sensibles masquées
        """
        pass

    @abstractmethod
    def is_sensitive_key(self, key: str) -> bool:
        pass

    @abstractmethod
    def add_pattern(self, pattern: str) -> None:
        pass
