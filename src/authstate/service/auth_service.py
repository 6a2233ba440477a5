"""
AuthState - Auth Service

Flux applicatifs composant tokens, sessions, verrouillage et journal de sécurité.

Ordre dans une requête de connexion:
    lecture compte -> verrouillage ? -> mot de passe -> écriture compteur
    -> session -> tokens -> événement de sécurité -> événement sortant

Raises (selon l'opération):
    InvalidCredentialsError, AccountLockedError, AccountInactiveError,
    TokenInvalidError (et sous-classes), SessionNotFoundError,
    SessionTerminationError, AlreadyExistsError, InvalidInputError,
    RateLimitExceededError, StoreError
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..audit.interfaces import ISecurityEventRecorder, SecurityEvent, SecurityEventType
from ..core.clock import Clock, utc_now
from ..errors import (
    AccountInactiveError,
    AccountLockedError,
    AlreadyExistsError,
    InvalidCredentialsError,
    InvalidInputError,
    RateLimitExceededError,
    RevocationIncompleteError,
    SessionNotFoundError,
    SessionTerminationError,
    StoreError,
    TokenInvalidError,
)
from ..events.interfaces import (
    USER_LOGGED_IN,
    USER_PASSWORD_RESET_COMPLETED,
    USER_PASSWORD_RESET_REQUESTED,
    USER_REGISTERED,
    DomainEvent,
    IEventPublisher,
)
from ..lockout.account_lockout import AccountLockoutPolicy
from ..logging.structured_logger import StructuredLogger
from ..network.interfaces import IRetryHandler, RetryConfig
from ..network.retry_handler import RetryHandler
from ..ratelimit.interfaces import IRateLimiter, RateLimitAction
from ..session.interfaces import ISessionStore, SessionRecord
from ..tokens.interfaces import ITokenService, TokenPayload, TokenType
from ..users.interfaces import IPasswordHasher, IUserRepository
from ..users.models import User, normalize_email, validate_password_strength

PASSWORD_RESET_PURPOSE = "password-reset"


@dataclass(frozen=True)
class AuthResult:
    """Résultat d'une authentification réussie."""

    access_token: str
    refresh_token: str
    user_id: str
    session_id: str
    expires_in: int


class AuthService:
    """
    Service d'authentification.

    Example:
        service = build_auth_service(config, users=repository).service
        result = await service.register("alice@example.com", "Password123")
        payload = await service.authenticate(result.access_token)
    """

    def __init__(
        self,
        users: IUserRepository,
        hasher: IPasswordHasher,
        tokens: ITokenService,
        sessions: ISessionStore,
        lockout: AccountLockoutPolicy,
        security_log: ISecurityEventRecorder,
        events: IEventPublisher,
        clock: Clock = utc_now,
        retry_handler: Optional[IRetryHandler] = None,
        bulk_retry_config: Optional[RetryConfig] = None,
        rate_limiter: Optional[IRateLimiter] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """
        Args:
            users: Dépôt des comptes
            hasher: Hachage des mots de passe
            tokens: Service tokens
            sessions: Stockage des sessions
            lockout: Politique de verrouillage
            security_log: Journal de sécurité (best effort)
            events: Canal des événements sortants
            clock: Horloge
            retry_handler: Retry des opérations en masse (reset password)
            bulk_retry_config: Configuration de ce retry
            rate_limiter: Limitation par IP (aucune si None)
            logger: Logger structuré
        """
        self._users = users
        self._hasher = hasher
        self._tokens = tokens
        self._sessions = sessions
        self._lockout = lockout
        self._security_log = security_log
        self._events = events
        self._clock = clock
        self._retry = retry_handler or RetryHandler()
        self._bulk_retry_config = bulk_retry_config or RetryConfig(
            retryable_exceptions=(StoreError, RevocationIncompleteError),
        )
        self._rate_limiter = rate_limiter
        self._logger = logger or StructuredLogger("authstate.auth")

    # ══════════════════════════════════════════════════════════════════════════
    # INSCRIPTION / CONNEXION
    # ══════════════════════════════════════════════════════════════════════════

    async def register(
        self,
        email: str,
        password: str,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResult:
        """
        Crée un compte et ouvre une première session.

        Raises:
            RateLimitExceededError: Trop d'inscriptions depuis cette IP
            InvalidInputError: Email malformé ou mot de passe trop faible
            AlreadyExistsError: Email déjà enregistré
        """
        log = self._logger.with_context()
        await self._check_rate_limit(RateLimitAction.REGISTRATION, ip)
        normalized = normalize_email(email)
        validate_password_strength(password)

        if await self._users.find_by_email(normalized) is not None:
            raise AlreadyExistsError()

        now = self._clock()
        user = User(
            email=normalized,
            password_hash=await self._hasher.hash(password),
            created_at=now,
            updated_at=now,
        )
        user = await self._users.save(user)

        result = await self._open_session(user, ip, user_agent)

        await self._security_log.record(
            SecurityEventType.ACCOUNT_CREATED,
            {"user_id": user.user_id, "email": user.email, "ip": ip, "user_agent": user_agent},
        )
        self._events.publish(DomainEvent(USER_REGISTERED, {"user_id": user.user_id, "email": user.email}))

        log.info("User registered", user_id=user.user_id)
        return result

    async def login(
        self,
        email: str,
        password: str,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResult:
        """
        Authentifie par email / mot de passe.

        Un compte verrouillé est refusé avant toute comparaison de mot de passe.
        Un échec est persisté avant que l'erreur ne soit levée.

        Raises:
            RateLimitExceededError: Trop de tentatives depuis cette IP
            InvalidCredentialsError: Email inconnu ou mot de passe incorrect
            AccountLockedError: Compte verrouillé (ou verrouillé par cet échec)
            AccountInactiveError: Compte désactivé
        """
        log = self._logger.with_context()
        context = {"ip": ip, "user_agent": user_agent}
        await self._check_rate_limit(RateLimitAction.LOGIN, ip)

        try:
            normalized = normalize_email(email)
        except InvalidInputError:
            raise InvalidCredentialsError() from None

        user = await self._users.find_by_email(normalized)
        if user is None:
            await self._record_login_failure(None, normalized, "unknown_email", context)
            raise InvalidCredentialsError()

        if self._lockout.is_locked(user.security):
            await self._record_login_failure(user.user_id, normalized, "account_locked", context)
            raise AccountLockedError(user.security.locked_until)

        if not await self._hasher.compare(password, user.password_hash):
            status = self._lockout.handle_failed_login(user.security)
            user.updated_at = self._clock()
            await self._users.save(user)

            await self._record_login_failure(
                user.user_id,
                normalized,
                "invalid_password",
                dict(context, failed_login_attempts=status.failed_login_attempts),
            )
            if status.locked:
                await self._security_log.record(
                    SecurityEventType.ACCOUNT_LOCKED,
                    {
                        "user_id": user.user_id,
                        "email": normalized,
                        "locked_until": status.locked_until.isoformat() if status.locked_until else None,
                        **context,
                    },
                )
                log.warn("Account locked", user_id=user.user_id, failed_login_attempts=status.failed_login_attempts)
                raise AccountLockedError(status.locked_until)
            raise InvalidCredentialsError()

        if not user.is_active:
            await self._record_login_failure(user.user_id, normalized, "account_inactive", context)
            raise AccountInactiveError()

        now = self._clock()
        self._lockout.handle_successful_login(user.security)
        user.last_login_at = now
        user.updated_at = now
        user = await self._users.save(user)

        result = await self._open_session(user, ip, user_agent)

        await self._security_log.record(
            SecurityEventType.LOGIN_SUCCESS,
            {
                "user_id": user.user_id,
                "email": normalized,
                "session_id": result.session_id,
                "success": True,
                **context,
            },
        )
        self._events.publish(
            DomainEvent(USER_LOGGED_IN, {"user_id": user.user_id, "session_id": result.session_id, "ip": ip})
        )

        log.info("User logged in", user_id=user.user_id, session=result.session_id)
        return result

    async def _record_login_failure(
        self,
        user_id: Optional[str],
        email: str,
        reason: str,
        context: Dict[str, Any],
    ) -> None:
        await self._security_log.record(
            SecurityEventType.LOGIN_FAILURE,
            {"user_id": user_id, "email": email, "reason": reason, "success": False, **context},
        )

    async def _check_rate_limit(self, action: RateLimitAction, ip: Optional[str]) -> None:
        # Sans adresse client (appel interne), pas de limitation
        if self._rate_limiter is None or not ip:
            return
        try:
            await self._rate_limiter.hit(ip, action)
        except RateLimitExceededError:
            await self._security_log.record(
                SecurityEventType.RATE_LIMIT_EXCEEDED,
                {"ip": ip, "action": action.value},
            )
            self._logger.warn("Rate limit exceeded", ip=ip, action=action.value)
            raise

    async def _open_session(self, user: User, ip: Optional[str], user_agent: Optional[str]) -> AuthResult:
        # Session créée avant les tokens: elle n'expire jamais après son refresh token
        session_id = await self._sessions.create(user.user_id, ip=ip, user_agent=user_agent)
        pair = await self._tokens.issue_token_pair(
            user.user_id,
            session_id,
            extra_claims={"email": user.email, "roles": list(user.roles)},
        )
        return AuthResult(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            user_id=user.user_id,
            session_id=session_id,
            expires_in=pair.expires_in,
        )

    # ══════════════════════════════════════════════════════════════════════════
    # DÉCONNEXION / REFRESH / AUTHENTIFICATION
    # ══════════════════════════════════════════════════════════════════════════

    async def logout(
        self,
        session_id: str,
        token: str,
        access_token: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> bool:
        """
        Révoque le refresh token (et l'access token fourni) puis supprime la session.

        Returns:
            True, toujours: les échecs de stockage sont journalisés
        """
        log = self._logger.with_context()

        for label, value in (("refresh", token), ("access", access_token)):
            if not value:
                continue
            try:
                await self._tokens.revoke(value)
            except StoreError as e:
                log.error("Logout: token revocation failed", token_type=label, user_id=user_id, error=str(e))

        try:
            await self._sessions.delete(session_id)
        except StoreError as e:
            log.error("Logout: session deletion failed", session=session_id, user_id=user_id, error=str(e))

        await self._security_log.record(SecurityEventType.LOGOUT, {"user_id": user_id, "session_id": session_id})
        log.info("User logged out", user_id=user_id, session=session_id)
        return True

    async def refresh(self, refresh_token: str) -> AuthResult:
        """
        Échange un refresh token contre une nouvelle paire.

        L'ancien refresh token est révoqué; la session est renouvelée
        avant l'émission de la nouvelle paire.

        Raises:
            TokenInvalidError (et sous-classes): Refresh token refusé
            SessionNotFoundError: Session terminée ou expirée
            AccountInactiveError: Compte désactivé
        """
        log = self._logger.with_context()
        payload = await self._tokens.validate(refresh_token, TokenType.REFRESH)

        if not payload.session_id:
            raise TokenInvalidError("Refresh token is not bound to a session")

        session = await self._sessions.get(payload.session_id)
        if session.user_id != payload.subject:
            raise SessionNotFoundError(payload.session_id)

        user = await self._users.find_by_id(payload.subject)
        if user is None:
            raise TokenInvalidError("Unknown token subject")
        if not user.is_active:
            raise AccountInactiveError()

        await self._tokens.revoke(refresh_token)
        if not await self._sessions.touch(session.session_id):
            raise SessionNotFoundError(session.session_id)

        pair = await self._tokens.issue_token_pair(
            user.user_id,
            session.session_id,
            extra_claims={"email": user.email, "roles": list(user.roles)},
        )

        await self._security_log.record(
            SecurityEventType.TOKEN_REFRESHED,
            {"user_id": user.user_id, "session_id": session.session_id},
        )
        log.info("Tokens refreshed", user_id=user.user_id, session=session.session_id)

        return AuthResult(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            user_id=user.user_id,
            session_id=session.session_id,
            expires_in=pair.expires_in,
        )

    async def authenticate(self, access_token: str) -> TokenPayload:
        """
        Valide un access token de requête.

        La session liée doit encore exister: une session terminée rend
        ses access tokens inutilisables avant leur expiration.

        Raises:
            TokenInvalidError (et sous-classes): Token refusé
            SessionNotFoundError: Session terminée ou expirée
        """
        payload = await self._tokens.validate(access_token, TokenType.ACCESS)
        if payload.purpose is not None:
            raise TokenInvalidError("Token cannot be used for authentication")
        if not payload.session_id:
            raise TokenInvalidError("Access token is not bound to a session")
        await self._sessions.get(payload.session_id)
        return payload

    # ══════════════════════════════════════════════════════════════════════════
    # MOT DE PASSE
    # ══════════════════════════════════════════════════════════════════════════

    async def forgot_password(self, email: str, ip: Optional[str] = None) -> bool:
        """
        Demande de réinitialisation.

        Returns:
            True, toujours: la réponse ne révèle pas si l'email existe

        Raises:
            RateLimitExceededError: Trop de demandes depuis cette IP
        """
        log = self._logger.with_context()
        await self._check_rate_limit(RateLimitAction.PASSWORD_RESET, ip)

        try:
            normalized = normalize_email(email)
            user = await self._users.find_by_email(normalized)
            if user is None or not user.is_active:
                log.info("Password reset requested for unknown or inactive account")
                return True

            reset_token = await self._tokens.issue_access_token(
                user.user_id,
                extra_claims={"purpose": PASSWORD_RESET_PURPOSE},
            )
        except InvalidInputError:
            return True
        except StoreError as e:
            log.error("Password reset request failed", error=str(e))
            return True

        await self._security_log.record(
            SecurityEventType.PASSWORD_RESET_REQUESTED,
            {"user_id": user.user_id, "email": user.email},
        )
        self._events.publish(
            DomainEvent(
                USER_PASSWORD_RESET_REQUESTED,
                {
                    "user_id": user.user_id,
                    "email": user.email,
                    "reset_token": reset_token,
                    "expires_in": self._tokens.access_token_ttl,
                },
            )
        )
        log.info("Password reset requested", user_id=user.user_id)
        return True

    async def reset_password(self, reset_token: str, new_password: str) -> bool:
        """
        Remplace le mot de passe puis invalide tous les tokens et sessions.

        La révocation en masse et la suppression des sessions sont retentées;
        un échec persistant est propagé (jamais considéré comme réussi).

        Raises:
            TokenInvalidError (et sous-classes): Token absent, expiré, révoqué ou sans usage reset
            InvalidInputError: Nouveau mot de passe trop faible
            RevocationIncompleteError, StoreError: Invalidation incomplète
        """
        log = self._logger.with_context()
        payload = await self._tokens.validate(reset_token, TokenType.ACCESS)
        if payload.purpose != PASSWORD_RESET_PURPOSE:
            raise TokenInvalidError("Invalid password reset token")

        validate_password_strength(new_password)

        user = await self._users.find_by_id(payload.subject)
        if user is None:
            raise TokenInvalidError("Unknown token subject")

        user.password_hash = await self._hasher.hash(new_password)
        user.updated_at = self._clock()
        self._lockout.unlock(user.security)
        await self._users.save(user)

        revoked = await self._retry.call(
            self._tokens.revoke_all_for_user, user.user_id, config=self._bulk_retry_config
        )
        terminated = await self._retry.call(
            self._sessions.delete_all_for_user, user.user_id, config=self._bulk_retry_config
        )

        await self._security_log.record(
            SecurityEventType.PASSWORD_RESET_COMPLETED,
            {"user_id": user.user_id, "tokens_revoked": revoked, "terminated_count": terminated},
        )
        self._events.publish(DomainEvent(USER_PASSWORD_RESET_COMPLETED, {"user_id": user.user_id}))
        log.info("Password reset completed", user_id=user.user_id, tokens_revoked=revoked, count=terminated)
        return True

    # ══════════════════════════════════════════════════════════════════════════
    # SESSIONS
    # ══════════════════════════════════════════════════════════════════════════

    async def terminate_session(self, user_id: str, session_id: str, current_session_id: str) -> int:
        """
        Termine une autre session de l'utilisateur.

        Returns:
            Nombre de sessions terminées (1)

        Raises:
            SessionTerminationError: Session courante ou session d'un autre utilisateur
            SessionNotFoundError: Session inexistante
        """
        if session_id == current_session_id:
            raise SessionTerminationError("Cannot terminate current session, use logout instead")

        session = await self._sessions.get(session_id)
        if session.user_id != user_id:
            raise SessionTerminationError("Cannot terminate session of another user")

        if not await self._sessions.delete(session_id):
            raise SessionNotFoundError(session_id)

        await self._security_log.record(
            SecurityEventType.SESSION_TERMINATED,
            {"user_id": user_id, "session_id": session_id, "reason": "terminated"},
        )
        return 1

    async def terminate_all_sessions(self, user_id: str, current_session_id: Optional[str] = None) -> int:
        """
        Termine toutes les sessions de l'utilisateur sauf la session courante.

        Returns:
            Nombre de sessions terminées
        """
        terminated = await self._sessions.delete_all_for_user(user_id, except_session_id=current_session_id)
        await self._security_log.record(
            SecurityEventType.ALL_SESSIONS_TERMINATED,
            {"user_id": user_id, "session_id": current_session_id, "terminated_count": terminated},
        )
        return terminated

    async def get_user_sessions(self, user_id: str) -> List[SessionRecord]:
        return await self._sessions.get_user_sessions(user_id)

    async def get_security_logs(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        event_types: Optional[Sequence[SecurityEventType]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[SecurityEvent]:
        return await self._security_log.query(
            user_id, limit=limit, offset=offset, event_types=event_types, start=start, end=end
        )
