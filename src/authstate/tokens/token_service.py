"""
AuthState - Token Service

Émission, validation et révocation des tokens.

Chaque émission écrit une métadonnée token:metadata:{userId}:{digest}
(TTL = durée de vie du token) qui permet de retrouver tous les tokens
d'un utilisateur pour la révocation en masse.

Raises (toutes opérations):
    StoreError: Stockage injoignable ou timeout (jamais traité comme succès)
"""

import asyncio
import math
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..core.clock import Clock, utc_now
from ..core.crypto_provider import token_digest
from ..core.interfaces import AuthConfig
from ..errors import (
    RevocationIncompleteError,
    TokenExpiredError,
    TokenInvalidError,
    TokenRevokedError,
    TokenWrongTypeError,
)
from ..logging.interfaces import IStructuredLogger
from ..logging.structured_logger import StructuredLogger
from ..storage.interfaces import IKeyValueStore
from .interfaces import (
    IRevocationRegistry,
    ITokenCodec,
    ITokenService,
    TokenMetadata,
    TokenPair,
    TokenPayload,
    TokenType,
)

METADATA_PREFIX = "token:metadata:"


def metadata_key(user_id: str, digest: str) -> str:
    return f"{METADATA_PREFIX}{user_id}:{digest}"


class TokenService(ITokenService):
    """
    Service tokens.

    Validation en lecture seule (une seule lecture stockage: la blacklist).
    """

    def __init__(
        self,
        codec: ITokenCodec,
        registry: IRevocationRegistry,
        store: IKeyValueStore,
        config: AuthConfig,
        clock: Clock = utc_now,
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        self._codec = codec
        self._registry = registry
        self._store = store
        self._access_ttl = config.access_token_ttl
        self._refresh_ttl = config.refresh_token_ttl
        self._clock = clock
        self._logger = logger or StructuredLogger("authstate.tokens")

    @property
    def access_token_ttl(self) -> int:
        return self._access_ttl

    @property
    def refresh_token_ttl(self) -> int:
        return self._refresh_ttl

    # ══════════════════════════════════════════════════════════════════════════
    # ÉMISSION
    # ══════════════════════════════════════════════════════════════════════════

    async def issue_access_token(
        self,
        user_id: str,
        extra_claims: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> str:
        return await self._issue(user_id, TokenType.ACCESS, self._access_ttl, extra_claims, session_id)

    async def issue_refresh_token(
        self,
        user_id: str,
        extra_claims: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ) -> str:
        return await self._issue(user_id, TokenType.REFRESH, self._refresh_ttl, extra_claims, session_id)

    async def issue_token_pair(
        self,
        user_id: str,
        session_id: str,
        extra_claims: Optional[Dict[str, Any]] = None,
    ) -> TokenPair:
        access_token = await self.issue_access_token(user_id, extra_claims, session_id)
        refresh_token = await self.issue_refresh_token(user_id, None, session_id)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self._access_ttl,
        )

    async def _issue(
        self,
        user_id: str,
        token_type: TokenType,
        ttl_seconds: int,
        extra_claims: Optional[Dict[str, Any]],
        session_id: Optional[str],
    ) -> str:
        issued_at = self._clock().replace(microsecond=0)
        payload = TokenPayload(
            subject=user_id,
            token_type=token_type,
            issued_at=issued_at,
            session_id=session_id,
            claims=dict(extra_claims or {}),
        )
        token = self._codec.sign(payload, ttl_seconds)

        metadata = TokenMetadata(
            user_id=user_id,
            token_type=token_type,
            created_at=issued_at,
            expires_at=issued_at + timedelta(seconds=ttl_seconds),
        )
        await self._store.set(
            metadata_key(user_id, token_digest(token)),
            metadata.to_json(),
            ttl_seconds=ttl_seconds,
        )

        self._logger.debug(
            "Token issued",
            user_id=user_id,
            token_type=token_type.value,
            session=session_id,
        )
        return token

    # ══════════════════════════════════════════════════════════════════════════
    # VALIDATION
    # ══════════════════════════════════════════════════════════════════════════

    async def validate(self, token: str, expected_type: TokenType) -> TokenPayload:
        """
        Valide un token.

        La révocation est vérifiée avant le type: un token révoqué
        échoue en TokenRevokedError quel que soit le type attendu.

        Raises:
            TokenInvalidError: Signature invalide ou token malformé
            TokenExpiredError: Expiration naturelle
            TokenRevokedError: Présent dans la blacklist
            TokenWrongTypeError: Type différent de expected_type
        """
        payload = self._codec.verify(token)

        if await self._registry.is_revoked(token):
            raise TokenRevokedError()

        if payload.token_type != expected_type:
            raise TokenWrongTypeError(expected_type.value, payload.token_type.value)

        return payload

    # ══════════════════════════════════════════════════════════════════════════
    # RÉVOCATION
    # ══════════════════════════════════════════════════════════════════════════

    async def revoke(self, token: str) -> bool:
        """
        Révoque un token jusqu'à son expiration naturelle.

        Un token déjà expiré ou invalide est inutilisable: succès sans écriture.

        Returns:
            True (le token ne sera plus accepté)
        """
        try:
            payload = self._codec.verify(token)
        except TokenExpiredError:
            self._logger.debug("Revoke skipped: token already expired")
            return True
        except TokenInvalidError:
            self._logger.debug("Revoke skipped: token invalid")
            return True

        remaining = payload.remaining_seconds(self._clock())
        await self._registry.revoke(token, remaining)

        self._logger.info(
            "Token revoked",
            user_id=payload.subject,
            token_type=payload.token_type.value,
            blacklisted=remaining > 0,
        )
        return True

    async def revoke_all_for_user(self, user_id: str) -> int:
        """
        Révocation en masse en deux phases.

        Phase 1: liste des métadonnées token:metadata:{userId}:* et lecture groupée.
        Phase 2: révocation concurrente de chaque empreinte avec son TTL restant.

        Relancer l'opération est sans risque (révocation idempotente).

        Returns:
            Nombre de tombstones écrits

        Raises:
            RevocationIncompleteError: Au moins une révocation a échoué
            StoreError: Échec de la phase 1
        """
        targets = await self._collect_revocation_targets(user_id)
        if not targets:
            self._logger.info("No tokens to revoke", user_id=user_id)
            return 0

        results = await asyncio.gather(
            *(self._registry.revoke_digest(digest, remaining) for digest, remaining in targets),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        revoked = sum(1 for r in results if r is True)

        if failures:
            self._logger.error(
                "Bulk token revocation incomplete",
                user_id=user_id,
                tokens_revoked=revoked,
                tokens_failed=len(failures),
                error=str(failures[0]),
            )
            raise RevocationIncompleteError(user_id, revoked, len(failures)) from failures[0]

        self._logger.info("All user tokens revoked", user_id=user_id, tokens_revoked=revoked)
        return revoked

    async def _collect_revocation_targets(self, user_id: str) -> List[Tuple[str, int]]:
        keys = await self._store.scan(f"{METADATA_PREFIX}{user_id}:*")
        if not keys:
            return []

        raw_values = await self._store.get_many(keys)
        now = self._clock()
        targets: List[Tuple[str, int]] = []

        for key, raw in zip(keys, raw_values):
            if raw is None:
                # Expiré entre le scan et la lecture
                continue
            digest = key.rsplit(":", 1)[-1]
            try:
                metadata = TokenMetadata.from_json(raw)
            except ValueError as e:
                self._logger.warn("Skipping unparseable token metadata", user_id=user_id, error=str(e))
                continue
            remaining = (metadata.expires_at - now).total_seconds()
            if remaining > 0:
                targets.append((digest, math.ceil(remaining)))

        return targets
