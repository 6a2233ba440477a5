"""
AuthState - Composition root

Construit tous les composants depuis une AuthConfig immuable et les relie
par injection explicite.

Usage:
    config = ConfigLoader().load("config/auth.yaml")
    app = build_auth_service(config, users=repository)
    app.dispatcher.start()
    result = await app.service.login("alice@example.com", "Password123")
    ...
    await app.close()
"""

from dataclasses import dataclass
from typing import Callable, Optional

from .audit.security_event_recorder import SecurityEventRecorder
from .core.clock import Clock, utc_now
from .core.interfaces import AuthConfig, ICryptoProvider
from .events.interfaces import IEventSink
from .events.outbound_channel import EventDispatcher, LoggingEventSink, OutboundEventChannel
from .lockout.account_lockout import AccountLockoutPolicy
from .logging.interfaces import LogConfig, LogLevel
from .logging.structured_logger import StructuredLogger
from .network.retry_handler import RetryHandler
from .ratelimit.rate_limiter import RateLimiter
from .service.auth_service import AuthService
from .session.session_store import SessionStore
from .storage.deadline_store import DeadlineKeyValueStore
from .storage.interfaces import IKeyValueStore
from .storage.redis_store import RedisKeyValueStore
from .tokens.revocation_registry import RevocationRegistry
from .tokens.token_codec import JwtTokenCodec
from .tokens.token_service import TokenService
from .users.cached_repository import CachedUserRepository
from .users.interfaces import IPasswordHasher, IUserRepository
from .users.memory_repository import MemoryUserRepository
from .users.password_hasher import Argon2PasswordHasher


@dataclass
class AuthComponents:
    """Composants reliés (exposés pour les tests et l'outillage)."""

    config: AuthConfig
    service: AuthService
    store: IKeyValueStore
    tokens: TokenService
    sessions: SessionStore
    lockout: AccountLockoutPolicy
    security_log: SecurityEventRecorder
    users: IUserRepository
    channel: OutboundEventChannel
    dispatcher: EventDispatcher
    logger: StructuredLogger
    rate_limiter: Optional[RateLimiter] = None

    async def close(self) -> None:
        """Livre les événements en file (avec ou sans worker) puis ferme le stockage."""
        await self.dispatcher.stop(drain=True)
        await self.store.close()


def build_auth_service(
    config: AuthConfig,
    store: Optional[IKeyValueStore] = None,
    users: Optional[IUserRepository] = None,
    hasher: Optional[IPasswordHasher] = None,
    event_sink: Optional[IEventSink] = None,
    crypto_provider: Optional[ICryptoProvider] = None,
    clock: Clock = utc_now,
    output_handler: Optional[Callable[[str], None]] = None,
) -> AuthComponents:
    """
    Args:
        config: Configuration validée
        store: Stockage partagé (défaut: Redis depuis config.redis_url)
        users: Dépôt des comptes, obligatoire avec le stockage Redis par défaut.
            Avec un store injecté, défaut: dépôt mémoire + cache write-through
            (exécution locale et tests uniquement: le dépôt mémoire est propre
            à l'instance)
        hasher: Hachage des mots de passe (défaut: argon2id)
        event_sink: Destination des événements sortants (défaut: logs)
        crypto_provider: Clés ES384 (défaut: config.jwt_private_key)
        clock: Horloge partagée par tous les composants
        output_handler: Destination des logs JSON (défaut: stderr)

    Returns:
        AuthComponents; le dispatcher n'est pas démarré

    Raises:
        ValueError: Stockage Redis par défaut sans dépôt de comptes partagé
    """
    if store is None and users is None:
        # Les compteurs de verrouillage doivent être partagés entre instances
        raise ValueError("users repository is required when no store is injected")

    logger = StructuredLogger(
        "authstate",
        config=LogConfig(min_level=LogLevel.from_name(config.log_level)),
        output_handler=output_handler,
        clock=clock,
    )

    backend = store or RedisKeyValueStore(config.redis_url, socket_timeout=config.store_operation_timeout)
    kv = DeadlineKeyValueStore(backend, timeout=config.store_operation_timeout)

    codec = JwtTokenCodec.from_config(config, crypto_provider=crypto_provider, clock=clock)
    tokens = TokenService(
        codec,
        RevocationRegistry(kv),
        kv,
        config,
        clock=clock,
        logger=logger.child("tokens"),
    )
    sessions = SessionStore(kv, ttl_seconds=config.refresh_token_ttl, clock=clock, logger=logger.child("session"))
    lockout = AccountLockoutPolicy(
        max_failed_attempts=config.max_failed_login_attempts,
        lock_duration=config.lockout_duration,
        clock=clock,
    )
    security_log = SecurityEventRecorder(
        kv,
        retention_seconds=config.security_log_ttl,
        clock=clock,
        logger=logger.child("security"),
    )
    user_repository = users or CachedUserRepository(
        MemoryUserRepository(),
        kv,
        ttl_seconds=config.user_cache_ttl,
        logger=logger.child("users"),
    )

    rate_limiter = (
        RateLimiter.from_config(kv, config, logger=logger.child("ratelimit")) if config.rate_limit_enabled else None
    )

    channel = OutboundEventChannel(max_size=config.event_queue_size, logger=logger.child("events"))
    dispatcher = EventDispatcher(
        channel,
        event_sink or LoggingEventSink(logger.child("events.sink")),
        retry_handler=RetryHandler(),
        logger=logger.child("events.dispatcher"),
    )

    service = AuthService(
        users=user_repository,
        hasher=hasher or Argon2PasswordHasher(),
        tokens=tokens,
        sessions=sessions,
        lockout=lockout,
        security_log=security_log,
        events=channel,
        clock=clock,
        retry_handler=RetryHandler(),
        rate_limiter=rate_limiter,
        logger=logger.child("auth"),
    )

    logger.info(
        "Auth service built",
        algorithm=config.jwt_algorithm.value,
        access_token_ttl=config.access_token_ttl,
        refresh_token_ttl=config.refresh_token_ttl,
    )

    return AuthComponents(
        config=config,
        service=service,
        store=kv,
        tokens=tokens,
        sessions=sessions,
        lockout=lockout,
        security_log=security_log,
        users=user_repository,
        channel=channel,
        dispatcher=dispatcher,
        logger=logger,
        rate_limiter=rate_limiter,
    )
