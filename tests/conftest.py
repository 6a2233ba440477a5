"""
AuthState - Pytest Configuration
Fixtures partagées pour tous les tests.
"""

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from authstate.audit import SecurityEventRecorder
from authstate.bootstrap import AuthComponents, build_auth_service
from authstate.core import AuthConfig
from authstate.events import MemoryEventSink
from authstate.lockout import AccountLockoutPolicy
from authstate.logging import StructuredLogger
from authstate.session import SessionStore
from authstate.storage import MemoryKeyValueStore
from authstate.tokens import JwtTokenCodec, RevocationRegistry, TokenService
from authstate.users import Argon2PasswordHasher

TEST_SECRET = "test-secret-with-at-least-32-characters!"


class FrozenClock:
    """Horloge contrôlée par le test."""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs: float) -> datetime:
        self.now += timedelta(seconds=seconds, **kwargs)
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store(clock: FrozenClock) -> MemoryKeyValueStore:
    return MemoryKeyValueStore(clock=clock)


@pytest.fixture
def config() -> AuthConfig:
    return AuthConfig(jwt_secret=TEST_SECRET)


@pytest.fixture
def log_lines() -> List[str]:
    """Lignes JSON écrites par les loggers des tests."""
    return []


@pytest.fixture
def logger(clock: FrozenClock, log_lines: List[str]) -> StructuredLogger:
    return StructuredLogger("authstate.test", output_handler=log_lines.append, clock=clock)


@pytest.fixture
def hasher() -> Argon2PasswordHasher:
    """Argon2 à coût minimal."""
    return Argon2PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def codec(config: AuthConfig, clock: FrozenClock) -> JwtTokenCodec:
    return JwtTokenCodec.from_config(config, clock=clock)


@pytest.fixture
def registry(store: MemoryKeyValueStore) -> RevocationRegistry:
    return RevocationRegistry(store)


@pytest.fixture
def token_service(
    codec: JwtTokenCodec,
    registry: RevocationRegistry,
    store: MemoryKeyValueStore,
    config: AuthConfig,
    clock: FrozenClock,
    logger: StructuredLogger,
) -> TokenService:
    return TokenService(codec, registry, store, config, clock=clock, logger=logger)


@pytest.fixture
def session_store(
    store: MemoryKeyValueStore,
    config: AuthConfig,
    clock: FrozenClock,
    logger: StructuredLogger,
) -> SessionStore:
    return SessionStore(store, ttl_seconds=config.refresh_token_ttl, clock=clock, logger=logger)


@pytest.fixture
def lockout(clock: FrozenClock) -> AccountLockoutPolicy:
    return AccountLockoutPolicy(max_failed_attempts=5, lock_duration=1800, clock=clock)


@pytest.fixture
def recorder(store: MemoryKeyValueStore, clock: FrozenClock, logger: StructuredLogger) -> SecurityEventRecorder:
    return SecurityEventRecorder(store, retention_seconds=7776000, clock=clock, logger=logger)


@pytest.fixture
def event_sink() -> MemoryEventSink:
    return MemoryEventSink()


@pytest.fixture
def app(
    config: AuthConfig,
    store: MemoryKeyValueStore,
    hasher: Argon2PasswordHasher,
    event_sink: MemoryEventSink,
    clock: FrozenClock,
    log_lines: List[str],
) -> AuthComponents:
    """Service complet sur stockage mémoire."""
    return build_auth_service(
        config,
        store=store,
        hasher=hasher,
        event_sink=event_sink,
        clock=clock,
        output_handler=log_lines.append,
    )
