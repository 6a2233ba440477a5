"""
AuthState - Session Store

Sessions en stockage partagé:
    session:{sessionId}        JSON SessionRecord, TTL = durée refresh token
    session:byUser:{userId}    ensemble des session_id de l'utilisateur

L'index peut contenir des identifiants dont la session a expiré:
find_by_user les élimine à la lecture.
"""

import math
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from ..core.clock import Clock, utc_now
from ..errors import SessionNotFoundError
from ..logging.interfaces import IStructuredLogger
from ..logging.structured_logger import StructuredLogger
from ..storage.interfaces import IKeyValueStore
from .interfaces import ISessionStore, SessionRecord

SESSION_PREFIX = "session:"
USER_INDEX_PREFIX = "session:byUser:"


def session_key(session_id: str) -> str:
    return f"{SESSION_PREFIX}{session_id}"


def user_index_key(user_id: str) -> str:
    return f"{USER_INDEX_PREFIX}{user_id}"


class SessionStore(ISessionStore):
    """
    Gestionnaire de sessions.

    Les horodatages sont tronqués à la seconde, comme iat/exp des tokens:
    une session créée ou renouvelée avant l'émission de son refresh token
    n'expire jamais après lui.

    Example:
        store = SessionStore(kv, ttl_seconds=config.refresh_token_ttl)
        session_id = await store.create("u-1", ip="10.0.0.1")
        record = await store.get(session_id)
    """

    UPDATABLE_FIELDS = frozenset({"data", "ip", "user_agent"})

    def __init__(
        self,
        store: IKeyValueStore,
        ttl_seconds: int,
        clock: Clock = utc_now,
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        """
        Args:
            store: Stockage partagé
            ttl_seconds: Durée de vie (= durée du refresh token)
            clock: Horloge
            logger: Logger structuré
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._logger = logger or StructuredLogger("authstate.session")

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _now(self) -> datetime:
        return self._clock().replace(microsecond=0)

    async def create(
        self,
        user_id: str,
        data: Optional[Dict[str, Any]] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        if not user_id:
            raise ValueError("user_id is required")

        now = self._now()
        record = SessionRecord(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            created_at=now,
            last_accessed_at=now,
            expires_at=now + timedelta(seconds=self._ttl),
            ip=ip,
            user_agent=user_agent,
            data=dict(data or {}),
        )

        await self._store.set(session_key(record.session_id), record.to_json(), ttl_seconds=self._ttl)
        await self._store.sadd(user_index_key(user_id), record.session_id)
        await self._store.expire(user_index_key(user_id), self._ttl)

        self._logger.info("Session created", user_id=user_id, session=record.session_id)
        return record.session_id

    async def find(self, session_id: str) -> Optional[SessionRecord]:
        """Comme get, mais None si absente."""
        if not session_id:
            return None
        raw = await self._store.get(session_key(session_id))
        if raw is None:
            return None
        try:
            return SessionRecord.from_json(raw)
        except ValueError as e:
            self._logger.error("Corrupted session record", session=session_id, error=str(e))
            return None

    async def get(self, session_id: str) -> SessionRecord:
        record = await self.find(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        return record

    async def update(self, session_id: str, partial: Dict[str, Any]) -> bool:
        """
        Args:
            session_id: Session à mettre à jour
            partial: Champs parmi data (fusionné), ip, user_agent

        Raises:
            ValueError: Champ non modifiable dans partial
        """
        unknown = set(partial) - self.UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update session fields: {sorted(unknown)}")

        record = await self.find(session_id)
        if record is None:
            return False

        if "data" in partial:
            record.data.update(partial["data"] or {})
        if "ip" in partial:
            record.ip = partial["ip"]
        if "user_agent" in partial:
            record.user_agent = partial["user_agent"]

        # expires_at reste borné par le refresh token courant: seul touch() le repousse
        remaining = math.ceil((record.expires_at - self._clock()).total_seconds())
        if remaining <= 0:
            return False

        record.last_accessed_at = self._now()
        await self._store.set(session_key(record.session_id), record.to_json(), ttl_seconds=remaining)
        return True

    async def touch(self, session_id: str) -> bool:
        """
        Renouvelle last_accessed_at et expires_at.

        Réservé au flux de refresh, qui émet un nouveau refresh token
        juste après.
        """
        record = await self.find(session_id)
        if record is None:
            return False
        await self._renew(record)
        return True

    async def _renew(self, record: SessionRecord) -> None:
        now = self._now()
        record.last_accessed_at = now
        record.expires_at = now + timedelta(seconds=self._ttl)
        await self._store.set(session_key(record.session_id), record.to_json(), ttl_seconds=self._ttl)
        await self._store.expire(user_index_key(record.user_id), self._ttl)

    async def delete(self, session_id: str) -> bool:
        record = await self.find(session_id)
        deleted = await self._store.delete(session_key(session_id))
        if record is not None:
            await self._store.srem(user_index_key(record.user_id), session_id)
        if deleted:
            self._logger.info("Session deleted", session=session_id)
        return deleted

    async def find_by_user(self, user_id: str) -> List[str]:
        """
        Identifiants des sessions vivantes de l'utilisateur.

        Les identifiants dont la session a expiré sont retirés de l'index.
        """
        session_ids = sorted(await self._store.smembers(user_index_key(user_id)))
        if not session_ids:
            return []

        raw_values = await self._store.get_many([session_key(sid) for sid in session_ids])
        live = [sid for sid, raw in zip(session_ids, raw_values) if raw is not None]
        dangling = [sid for sid, raw in zip(session_ids, raw_values) if raw is None]
        if dangling:
            await self._store.srem(user_index_key(user_id), *dangling)
        return live

    async def get_user_sessions(self, user_id: str) -> List[SessionRecord]:
        """Sessions vivantes, les plus récentes d'abord."""
        session_ids = await self.find_by_user(user_id)
        if not session_ids:
            return []

        raw_values = await self._store.get_many([session_key(sid) for sid in session_ids])
        records: List[SessionRecord] = []
        for raw in raw_values:
            if raw is None:
                continue
            try:
                records.append(SessionRecord.from_json(raw))
            except ValueError as e:
                self._logger.error("Corrupted session record", user_id=user_id, error=str(e))

        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    async def delete_all_for_user(self, user_id: str, except_session_id: Optional[str] = None) -> int:
        """
        Supprime toutes les sessions de l'utilisateur.

        Args:
            user_id: Utilisateur
            except_session_id: Session conservée (session courante)

        Returns:
            Nombre de sessions supprimées
        """
        session_ids = await self._store.smembers(user_index_key(user_id))
        deleted = 0
        for sid in session_ids:
            if sid == except_session_id:
                continue
            if await self._store.delete(session_key(sid)):
                deleted += 1
            await self._store.srem(user_index_key(user_id), sid)

        if except_session_id is None:
            await self._store.delete(user_index_key(user_id))

        self._logger.info("User sessions deleted", user_id=user_id, count=deleted)
        return deleted
