"""
AuthState - Structured Logger

Logger JSON structuré. Une entrée = un objet JSON sur une ligne,
écrit sur le handler de sortie (stderr par défaut).
"""

import sys
import uuid
from typing import Any, Callable, Dict, List, Optional

from ..core.clock import Clock, utc_now
from .interfaces import IStructuredLogger, ISensitiveMasker, LogConfig, LogEntry, LogLevel
from .sensitive_masker import SensitiveMasker


class MissingRequiredFieldError(Exception):
    """Champ obligatoire manquant."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Required field missing: {field_name}")


def _stderr_handler(line: str) -> None:
    sys.stderr.write(line + "\n")


class StructuredLogger(IStructuredLogger):
    """
    Logger JSON structuré avec champs obligatoires.

    Example:
        logger = StructuredLogger("authstate.tokens")
        logger.info("Token revoked", user_id="u-789", token_type="refresh")
    """

    def __init__(
        self,
        name: str,
        config: Optional[LogConfig] = None,
        masker: Optional[ISensitiveMasker] = None,
        output_handler: Optional[Callable[[str], None]] = None,
        clock: Clock = utc_now,
    ) -> None:
        """
        Args:
            name: Nom du logger (module émetteur)
            config: Configuration optionnelle
            masker: Masker pour données sensibles
            output_handler: Destination des lignes JSON (défaut: stderr)
            clock: Horloge des timestamps

        Raises:
            ValueError: Si name vide
        """
        if not name or not name.strip():
            raise ValueError("Logger name cannot be empty")

        self._name = name.strip()
        self._config = config or LogConfig()
        self._masker = masker or SensitiveMasker()
        self._output_handler = output_handler or _stderr_handler
        self._clock = clock
        self._entries: List[LogEntry] = []
        self._default_correlation_id: Optional[str] = self._config.default_correlation_id

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> LogConfig:
        return self._config

    def child(self, suffix: str) -> "StructuredLogger":
        """Logger dérivé partageant configuration, masker et sortie."""
        return StructuredLogger(
            f"{self._name}.{suffix}",
            config=self._config,
            masker=self._masker,
            output_handler=self._output_handler,
            clock=self._clock,
        )

    def log(
        self,
        level: LogLevel,
        message: str,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> Optional[LogEntry]:
        """
        Processus:
            1. Vérifie niveau >= min_level
            2. Résout correlation_id (généré si absent)
            3. Masque données sensibles dans extra
            4. Écrit la ligne JSON

        Raises:
            MissingRequiredFieldError: Message vide
        """
        if not self._should_log(level):
            return None

        if not message:
            raise MissingRequiredFieldError("message")

        resolved_correlation = correlation_id or self._default_correlation_id
        if not resolved_correlation:
            resolved_correlation = str(uuid.uuid4())

        masked_extra: Dict[str, Any] = {}
        if extra and self._config.include_extra:
            masked_extra = self._masker.mask(dict(extra)) if self._config.mask_sensitive else dict(extra)

        entry = LogEntry(
            timestamp=self._generate_timestamp(),
            level=level,
            correlation_id=resolved_correlation,
            message=message,
            extra=masked_extra,
            logger_name=self._name,
        )

        if self._config.retained_entries > 0:
            self._entries.append(entry)
            if len(self._entries) > self._config.retained_entries:
                del self._entries[0]

        self._output_handler(entry.to_json())
        return entry

    def _generate_timestamp(self) -> str:
        """Format: 2024-12-04T14:30:00.123Z"""
        now = self._clock()
        return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"

    def _should_log(self, level: LogLevel) -> bool:
        return LogLevel.get_priority(level) >= LogLevel.get_priority(self._config.min_level)

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.CRITICAL, message, **extra)

    def get_entries(self) -> List[LogEntry]:
        return list(self._entries)

    def clear_entries(self) -> None:
        self._entries.clear()

    def with_context(self, correlation_id: Optional[str] = None) -> "ContextualLogger":
        """Logger avec correlation_id fixé (une requête = un id)."""
        return ContextualLogger(
            self,
            correlation_id=correlation_id or self._default_correlation_id or str(uuid.uuid4()),
        )


class ContextualLogger:
    """Wrapper qui fixe correlation_id pour toute une requête."""

    def __init__(self, logger: StructuredLogger, correlation_id: str) -> None:
        self._logger = logger
        self._correlation_id = correlation_id

    @property
    def correlation_id(self) -> str:
        return self._correlation_id

    def log(self, level: LogLevel, message: str, **extra: Any) -> Optional[LogEntry]:
        return self._logger.log(level, message, correlation_id=self._correlation_id, **extra)

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.CRITICAL, message, **extra)
