"""
AuthState - Security Event Recorder

Stockage: security:logs:{userId|anonymous}:{timestampMillis}, TTL = rétention.
Chaque événement est aussi écrit dans le logger structuré.

L'enregistrement est best effort: un échec de stockage est journalisé
et n'interrompt jamais le flux d'authentification appelant.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.clock import Clock, from_millis, to_millis, utc_now
from ..errors import StoreError
from ..logging.interfaces import IStructuredLogger, ISensitiveMasker, LogLevel
from ..logging.sensitive_masker import SensitiveMasker
from ..logging.structured_logger import StructuredLogger
from ..storage.interfaces import IKeyValueStore
from .interfaces import (
    ACCESS_EVENTS,
    AUTHENTICATION_EVENTS,
    PASSWORD_EVENTS,
    ISecurityEventRecorder,
    SecurityEvent,
    SecurityEventSeverity,
    SecurityEventType,
)

SECURITY_LOG_PREFIX = "security:logs:"
ANONYMOUS_USER = "anonymous"

_LOG_LEVELS = {
    SecurityEventSeverity.INFO: LogLevel.INFO,
    SecurityEventSeverity.WARNING: LogLevel.WARN,
    SecurityEventSeverity.ERROR: LogLevel.ERROR,
    SecurityEventSeverity.CRITICAL: LogLevel.CRITICAL,
}


def classify_severity(event_type: SecurityEventType, success: Optional[bool] = None) -> SecurityEventSeverity:
    """Sévérité d'un événement, déterminée par son type (et son issue pour l'authentification)."""
    if event_type == SecurityEventType.SECURITY_BREACH:
        return SecurityEventSeverity.CRITICAL
    if event_type in (SecurityEventType.UNAUTHORIZED_ACCESS, SecurityEventType.PERMISSION_VIOLATION):
        return SecurityEventSeverity.ERROR
    if event_type in ACCESS_EVENTS or event_type in PASSWORD_EVENTS:
        return SecurityEventSeverity.WARNING
    if event_type in (
        SecurityEventType.LOGIN_FAILURE,
        SecurityEventType.TOKEN_REVOKED,
        SecurityEventType.ACCOUNT_LOCKED,
        SecurityEventType.ALL_SESSIONS_TERMINATED,
    ):
        return SecurityEventSeverity.WARNING
    if event_type in AUTHENTICATION_EVENTS and success is False:
        return SecurityEventSeverity.WARNING
    return SecurityEventSeverity.INFO


def security_log_key(user_id: Optional[str], millis: int) -> str:
    return f"{SECURITY_LOG_PREFIX}{user_id or ANONYMOUS_USER}:{millis}"


def _key_millis(key: str) -> int:
    return int(key.rsplit(":", 1)[-1])


class SecurityEventRecorder(ISecurityEventRecorder):
    """
    Journal de sécurité.

    Deux événements dans la même milliseconde pour le même utilisateur
    ne s'écrasent pas: la clé est écrite en only_if_absent et la
    milliseconde incrémentée en cas de collision.

    Example:
        recorder = SecurityEventRecorder(store, retention_seconds=7776000)
        await recorder.record(SecurityEventType.LOGIN_FAILURE, {"user_id": "u-1", "success": False})
        events = await recorder.query("u-1", limit=20)
    """

    MAX_KEY_COLLISIONS: int = 1000
    MAX_STRING_LENGTH: int = 1000
    MAX_KEY_LENGTH: int = 100

    def __init__(
        self,
        store: IKeyValueStore,
        retention_seconds: int = 7776000,
        clock: Clock = utc_now,
        logger: Optional[IStructuredLogger] = None,
        masker: Optional[ISensitiveMasker] = None,
    ) -> None:
        """
        Args:
            store: Stockage partagé
            retention_seconds: Durée de conservation (défaut: 90 jours)
            clock: Horloge
            logger: Logger structuré (miroir des événements)
            masker: Masquage des données sensibles avant stockage
        """
        if retention_seconds <= 0:
            raise ValueError("retention_seconds must be > 0")
        self._store = store
        self._retention = retention_seconds
        self._clock = clock
        self._logger = logger or StructuredLogger("authstate.security")
        self._masker = masker or SensitiveMasker()

    async def record(
        self,
        event_type: SecurityEventType,
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[SecurityEvent]:
        clean_data = self._sanitize_data(self._masker.mask(dict(data or {})))
        success = clean_data.get("success")
        severity = classify_severity(event_type, success if isinstance(success, bool) else None)
        user_id = clean_data.get("user_id")

        try:
            event = await self._store_event(event_type, severity, user_id, clean_data)
        except StoreError as e:
            self._logger.error(
                "Failed to record security event",
                event_type=event_type.value,
                user_id=user_id,
                error=str(e),
            )
            return None

        self._logger.log(
            _LOG_LEVELS[severity],
            f"Security event: {event_type.value}",
            event_type=event_type.value,
            severity=severity.value,
            data=clean_data,
        )
        return event

    async def _store_event(
        self,
        event_type: SecurityEventType,
        severity: SecurityEventSeverity,
        user_id: Optional[str],
        data: Dict[str, Any],
    ) -> SecurityEvent:
        millis = to_millis(self._clock())

        for _ in range(self.MAX_KEY_COLLISIONS):
            event = SecurityEvent(type=event_type, severity=severity, timestamp=from_millis(millis), data=data)
            written = await self._store.set(
                security_log_key(user_id, millis),
                event.to_json(),
                ttl_seconds=self._retention,
                only_if_absent=True,
            )
            if written:
                return event
            millis += 1

        raise StoreError(f"No free security log slot for user {user_id or ANONYMOUS_USER}")

    def _sanitize_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        clean: Dict[str, Any] = {}
        for key, value in data.items():
            if not isinstance(key, str) or len(key) > self.MAX_KEY_LENGTH:
                continue
            if isinstance(value, str) and len(value) > self.MAX_STRING_LENGTH:
                value = value[: self.MAX_STRING_LENGTH]
            clean[key] = value
        return clean

    # ══════════════════════════════════════════════════════════════════════════
    # CONSULTATION
    # ══════════════════════════════════════════════════════════════════════════

    async def query(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        event_types: Optional[Sequence[SecurityEventType]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[SecurityEvent]:
        """
        Args:
            user_id: Utilisateur ("anonymous" pour les événements sans utilisateur)
            limit: Nombre max d'événements
            offset: Événements à sauter (pagination)
            event_types: Filtre sur les types
            start: Borne inférieure incluse
            end: Borne supérieure incluse
        """
        if limit <= 0:
            return []

        keys = await self._keys_in_range(f"{SECURITY_LOG_PREFIX}{user_id}:*", start, end)
        keys.sort(key=lambda item: item[0], reverse=True)

        if not event_types:
            page = [key for _, key in keys[offset : offset + limit]]
            return await self._load(page)

        wanted = set(event_types)
        events = [e for e in await self._load([key for _, key in keys]) if e.type in wanted]
        return events[offset : offset + limit]

    async def count_by_type(
        self,
        user_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[SecurityEventType, int]:
        """Nombre d'événements par type (tous utilisateurs si user_id est None)."""
        keys = await self._keys_in_range(f"{SECURITY_LOG_PREFIX}{user_id or '*'}:*", start, end)
        counts: Dict[SecurityEventType, int] = {}
        for event in await self._load([key for _, key in keys]):
            counts[event.type] = counts.get(event.type, 0) + 1
        return counts

    async def _keys_in_range(
        self,
        pattern: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[Tuple[int, str]]:
        start_ms = to_millis(start) if start else None
        end_ms = to_millis(end) if end else None

        result: List[Tuple[int, str]] = []
        for key in await self._store.scan(pattern):
            try:
                millis = _key_millis(key)
            except ValueError:
                continue
            if start_ms is not None and millis < start_ms:
                continue
            if end_ms is not None and millis > end_ms:
                continue
            result.append((millis, key))
        return result

    async def _load(self, keys: List[str]) -> List[SecurityEvent]:
        if not keys:
            return []
        events: List[SecurityEvent] = []
        for key, raw in zip(keys, await self._store.get_many(keys)):
            if raw is None:
                continue
            try:
                events.append(SecurityEvent.from_json(raw))
            except ValueError as e:
                self._logger.warn("Skipping unparseable security event", key=key, error=str(e))
        return events

    @property
    def retention(self) -> timedelta:
        return timedelta(seconds=self._retention)
