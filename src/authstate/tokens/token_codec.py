"""
AuthState - JWT Token Codec

Signature HS256 (secret partagé) ou ES384 (paire P-384).
L'expiration est vérifiée contre l'horloge injectée, pas celle de PyJWT.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from ..core.clock import Clock, utc_now
from ..core.interfaces import AuthConfig, ICryptoProvider, SigningAlgorithm
from ..core.crypto_provider import CryptoProvider
from ..errors import TokenExpiredError, TokenInvalidError
from .interfaces import ITokenCodec, TokenPayload, TokenType


class JwtTokenCodec(ITokenCodec):
    """
    Codec JWT.

    Claims: sub, type, iat, exp, jti, sid (optionnel), iss (optionnel),
    plus les claims additionnels du payload.

    Example:
        codec = JwtTokenCodec.from_config(config)
        token = codec.sign(TokenPayload("u-1", TokenType.ACCESS, now), 900)
        codec.verify(token).subject  # "u-1"
    """

    RESERVED_CLAIMS = frozenset({"sub", "type", "iat", "exp", "jti", "sid", "iss"})
    REQUIRED_CLAIMS = ["sub", "type", "iat", "exp", "jti"]

    def __init__(
        self,
        signing_key: Any,
        verification_key: Any,
        algorithm: SigningAlgorithm = SigningAlgorithm.HS256,
        issuer: Optional[str] = None,
        clock: Clock = utc_now,
    ) -> None:
        """
        Args:
            signing_key: Secret (HS256) ou clé privée EC (ES384)
            verification_key: Secret (HS256) ou clé publique EC (ES384)
            algorithm: Algorithme de signature
            issuer: Valeur iss émise et exigée
            clock: Horloge de référence pour iat/exp
        """
        self._signing_key = signing_key
        self._verification_key = verification_key
        self._algorithm = SigningAlgorithm(algorithm)
        self._issuer = issuer
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: AuthConfig,
        crypto_provider: Optional[ICryptoProvider] = None,
        clock: Clock = utc_now,
    ) -> "JwtTokenCodec":
        if config.jwt_algorithm == SigningAlgorithm.ES384:
            provider = crypto_provider or CryptoProvider.from_pem(config.jwt_private_key or "")
            return cls(
                provider.signing_key(),
                provider.verification_key(),
                algorithm=SigningAlgorithm.ES384,
                issuer=config.jwt_issuer,
                clock=clock,
            )
        return cls(
            config.jwt_secret,
            config.jwt_secret,
            algorithm=SigningAlgorithm.HS256,
            issuer=config.jwt_issuer,
            clock=clock,
        )

    @property
    def algorithm(self) -> SigningAlgorithm:
        return self._algorithm

    def sign(self, payload: TokenPayload, ttl_seconds: int) -> str:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")

        reserved = self.RESERVED_CLAIMS.intersection(payload.claims)
        if reserved:
            raise ValueError(f"Reserved claims cannot be overridden: {sorted(reserved)}")

        # JWT: résolution à la seconde
        issued_at = payload.issued_at.replace(microsecond=0)
        expires_at = issued_at + timedelta(seconds=ttl_seconds)

        claims: Dict[str, Any] = dict(payload.claims)
        claims.update(
            {
                "sub": payload.subject,
                "type": payload.token_type.value,
                "iat": int(issued_at.timestamp()),
                "exp": int(expires_at.timestamp()),
                "jti": payload.token_id,
            }
        )
        if payload.session_id:
            claims["sid"] = payload.session_id
        if self._issuer:
            claims["iss"] = self._issuer

        return jwt.encode(claims, self._signing_key, algorithm=self._algorithm.value)

    def verify(self, token: str) -> TokenPayload:
        if not token:
            raise TokenInvalidError("Empty token")

        required = list(self.REQUIRED_CLAIMS)
        if self._issuer:
            required.append("iss")

        try:
            decoded = jwt.decode(
                token,
                self._verification_key,
                algorithms=[self._algorithm.value],
                issuer=self._issuer,
                options={
                    "require": required,
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_iss": self._issuer is not None,
                },
            )
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid token: {e}") from e

        try:
            token_type = TokenType(decoded["type"])
            issued_at = datetime.fromtimestamp(decoded["iat"], tz=timezone.utc)
            expires_at = datetime.fromtimestamp(decoded["exp"], tz=timezone.utc)
        except (ValueError, TypeError, OverflowError) as e:
            raise TokenInvalidError(f"Invalid token claims: {e}") from e

        if self._clock() >= expires_at:
            raise TokenExpiredError()

        extra = {k: v for k, v in decoded.items() if k not in self.RESERVED_CLAIMS}

        return TokenPayload(
            subject=str(decoded["sub"]),
            token_type=token_type,
            issued_at=issued_at,
            expires_at=expires_at,
            session_id=decoded.get("sid"),
            token_id=str(decoded["jti"]),
            claims=extra,
        )
