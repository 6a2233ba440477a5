"""
Tests d'intégration: flux complets sur le service assemblé (stockage mémoire).
"""

import asyncio
import json
from contextlib import ExitStack
from datetime import timedelta
from typing import List
from unittest.mock import AsyncMock, patch

import pytest

from authstate.bootstrap import AuthComponents, build_auth_service
from authstate.core import ConfigLoader, CryptoProvider, SigningAlgorithm
from authstate.errors import (
    AccountLockedError,
    InvalidCredentialsError,
    SessionNotFoundError,
    SessionTerminationError,
    TokenExpiredError,
    TokenRevokedError,
)
from authstate.events import USER_PASSWORD_RESET_REQUESTED, USER_REGISTERED, MemoryEventSink
from authstate.lockout import AccountSecurityState
from authstate.storage import MemoryKeyValueStore
from authstate.tokens import TokenType
from authstate.users import IPasswordHasher

EMAIL = "alice@example.com"
PASSWORD = "Password123"


class TestScenarios:
    @pytest.mark.asyncio
    async def test_register_then_validate(self, app: AuthComponents) -> None:
        """Inscription: le token d'accès est immédiatement valide."""
        result = await app.service.register(EMAIL, PASSWORD)

        payload = await app.tokens.validate(result.access_token, TokenType.ACCESS)

        assert result.refresh_token
        assert result.session_id
        assert payload.subject == result.user_id

    @pytest.mark.asyncio
    async def test_five_failures_lock_account(self, app: AuthComponents, clock) -> None:
        """5 échecs: verrouillé; le bon mot de passe est refusé jusqu'à locked_until."""
        await app.service.register(EMAIL, PASSWORD)

        for _ in range(4):
            with pytest.raises(InvalidCredentialsError):
                await app.service.login(EMAIL, "Wrong1Password")
        with pytest.raises(AccountLockedError) as exc_info:
            await app.service.login(EMAIL, "Wrong1Password")

        locked_until = exc_info.value.locked_until
        with pytest.raises(AccountLockedError):
            await app.service.login(EMAIL, PASSWORD)

        clock.now = locked_until - timedelta(seconds=1)
        with pytest.raises(AccountLockedError):
            await app.service.login(EMAIL, PASSWORD)

        clock.now = locked_until
        assert (await app.service.login(EMAIL, PASSWORD)).access_token

    @pytest.mark.asyncio
    async def test_logout_revokes_refresh_and_session(self, app: AuthComponents) -> None:
        await app.service.register(EMAIL, PASSWORD)
        result = await app.service.login(EMAIL, PASSWORD)

        await app.service.logout(result.session_id, result.refresh_token)

        with pytest.raises(TokenRevokedError):
            await app.tokens.validate(result.refresh_token, TokenType.REFRESH)
        with pytest.raises(SessionNotFoundError):
            await app.sessions.get(result.session_id)

    @pytest.mark.asyncio
    async def test_reset_password_revokes_all_tokens(
        self, app: AuthComponents, event_sink: MemoryEventSink
    ) -> None:
        result = await app.service.register(EMAIL, PASSWORD)
        extra = await app.tokens.issue_access_token(result.user_id, session_id=result.session_id)
        live_tokens = [
            (result.access_token, TokenType.ACCESS),
            (result.refresh_token, TokenType.REFRESH),
            (extra, TokenType.ACCESS),
        ]

        await app.service.forgot_password(EMAIL)
        await app.dispatcher.drain()
        reset_token = event_sink.named(USER_PASSWORD_RESET_REQUESTED)[0].payload["reset_token"]
        await app.service.reset_password(reset_token, "NewPassword456")

        for token, token_type in live_tokens:
            with pytest.raises(TokenRevokedError):
                await app.tokens.validate(token, token_type)
        assert await app.sessions.find_by_user(result.user_id) == []

    @pytest.mark.asyncio
    async def test_terminate_other_session(self, app: AuthComponents) -> None:
        first = await app.service.register(EMAIL, PASSWORD)
        second = await app.service.login(EMAIL, PASSWORD)

        await app.service.terminate_session(first.user_id, first.session_id, current_session_id=second.session_id)

        with pytest.raises(SessionNotFoundError):
            await app.sessions.get(first.session_id)
        assert (await app.service.authenticate(second.access_token)).session_id == second.session_id
        with pytest.raises(SessionTerminationError):
            await app.service.terminate_session(first.user_id, second.session_id, current_session_id=second.session_id)

    @pytest.mark.asyncio
    async def test_revoke_expired_token_is_noop(
        self, app: AuthComponents, store: MemoryKeyValueStore, clock
    ) -> None:
        result = await app.service.register(EMAIL, PASSWORD)
        clock.advance(app.config.access_token_ttl + 1)

        assert await app.tokens.revoke(result.access_token) is True

        assert not [key for key in store.keys() if key.startswith("token:blacklist:")]


class TestProperties:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("token_type", [TokenType.ACCESS, TokenType.REFRESH])
    @pytest.mark.parametrize("subject", ["u-1", "7f3c2a9e-user", "üser"])
    async def test_round_trip(self, app: AuthComponents, clock, token_type: TokenType, subject: str) -> None:
        if token_type is TokenType.ACCESS:
            token = await app.tokens.issue_access_token(subject)
        else:
            token = await app.tokens.issue_refresh_token(subject)
        clock.advance(app.config.access_token_ttl - 1)

        payload = await app.tokens.validate(token, token_type)

        assert payload.subject == subject
        assert payload.token_type is token_type

    @pytest.mark.asyncio
    @pytest.mark.parametrize("expected_type", [TokenType.ACCESS, TokenType.REFRESH])
    async def test_revocation_permanent_until_expiry(
        self, app: AuthComponents, clock, expected_type: TokenType
    ) -> None:
        token = await app.tokens.issue_refresh_token("u-1")
        await app.tokens.revoke(token)

        for step in (0, 3600, 86400, app.config.refresh_token_ttl - 86400 - 3600 - 1):
            clock.advance(step)
            with pytest.raises(TokenRevokedError):
                await app.tokens.validate(token, expected_type)

        clock.advance(1)
        with pytest.raises(TokenExpiredError):
            await app.tokens.validate(token, expected_type)

    @pytest.mark.asyncio
    async def test_idempotent_revoke(self, app: AuthComponents, store: MemoryKeyValueStore) -> None:
        token = await app.tokens.issue_access_token("u-1")

        await app.tokens.revoke(token)
        once = {key: await store.get(key) for key in store.keys()}
        await app.tokens.revoke(token)
        twice = {key: await store.get(key) for key in store.keys()}

        assert once == twice

    def test_lockout_threshold(self, app: AuthComponents) -> None:
        state = AccountSecurityState()
        for _ in range(4):
            app.lockout.handle_failed_login(state)
        assert app.lockout.is_locked(state) is False

        app.lockout.handle_failed_login(state)
        assert app.lockout.is_locked(state) is True

        app.lockout.handle_successful_login(state)
        assert state.failed_login_attempts == 0
        assert app.lockout.is_locked(state) is False

    @pytest.mark.asyncio
    async def test_session_bound_to_refresh_lifetime(self, app: AuthComponents, clock) -> None:
        result = await app.service.register(EMAIL, PASSWORD)
        refresh_ttl = app.config.refresh_token_ttl

        for _ in range(3):
            clock.advance(seconds=refresh_ttl // 2, microseconds=250000)
            result = await app.service.refresh(result.refresh_token)
            session = await app.sessions.get(result.session_id)
            refresh = await app.tokens.validate(result.refresh_token, TokenType.REFRESH)

            assert session.expires_at <= session.last_accessed_at + timedelta(seconds=refresh_ttl)
            assert session.expires_at <= refresh.expires_at

    @pytest.mark.asyncio
    async def test_new_session_never_outlives_refresh_token(self, app: AuthComponents, clock) -> None:
        clock.advance(microseconds=999000)
        result = await app.service.register(EMAIL, PASSWORD)

        session = await app.sessions.get(result.session_id)
        refresh = await app.tokens.validate(result.refresh_token, TokenType.REFRESH)

        assert session.expires_at <= session.created_at + timedelta(seconds=app.config.refresh_token_ttl)
        assert session.expires_at <= refresh.expires_at

    @pytest.mark.asyncio
    async def test_session_update_never_outlives_refresh_token(self, app: AuthComponents, clock) -> None:
        result = await app.service.register(EMAIL, PASSWORD)
        clock.advance(3600)

        assert await app.sessions.update(result.session_id, {"data": {"theme": "dark"}}) is True

        session = await app.sessions.get(result.session_id)
        refresh = await app.tokens.validate(result.refresh_token, TokenType.REFRESH)
        assert session.data == {"theme": "dark"}
        assert session.expires_at <= refresh.expires_at

    @pytest.mark.asyncio
    async def test_bulk_revoke_completeness(self, app: AuthComponents) -> None:
        tokens: List[str] = []
        for _ in range(5):
            tokens.append(await app.tokens.issue_access_token("u-1"))
            tokens.append(await app.tokens.issue_refresh_token("u-1"))

        assert await app.tokens.revoke_all_for_user("u-1") == len(tokens)

        for token in tokens:
            with pytest.raises(TokenRevokedError):
                await app.tokens.validate(token, TokenType.ACCESS)


class BarrierHasher(IPasswordHasher):
    """Retient chaque comparaison jusqu'à ce que `parties` appels soient en cours."""

    def __init__(self, inner: IPasswordHasher, parties: int) -> None:
        self._inner = inner
        self._parties = parties
        self._arrived = 0
        self._released = asyncio.Event()

    async def hash(self, password: str) -> str:
        return await self._inner.hash(password)

    async def compare(self, password: str, password_hash: str) -> bool:
        self._arrived += 1
        if self._arrived >= self._parties:
            self._released.set()
        await self._released.wait()
        return await self._inner.compare(password, password_hash)


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_failures_lose_one_count(self, config, store, hasher, clock) -> None:
        """Deux échecs simultanés lisent le même compteur: un seul incrément survit."""
        app = build_auth_service(
            config,
            store=store,
            hasher=BarrierHasher(hasher, parties=2),
            clock=clock,
            output_handler=lambda line: None,
        )
        result = await app.service.register(EMAIL, PASSWORD)

        outcomes = await asyncio.gather(
            app.service.login(EMAIL, "Wrong1Password"),
            app.service.login(EMAIL, "Wrong2Password"),
            return_exceptions=True,
        )

        assert all(isinstance(outcome, InvalidCredentialsError) for outcome in outcomes)
        user = await app.users.find_by_id(result.user_id)
        assert user.security.failed_login_attempts == 1

    @pytest.mark.asyncio
    async def test_concurrent_validation_is_read_only(
        self, app: AuthComponents, store: MemoryKeyValueStore
    ) -> None:
        result = await app.service.register(EMAIL, PASSWORD)
        before = store.keys()

        with ExitStack() as stack:
            for name in ("set", "delete", "expire", "sadd", "srem", "incr"):
                stack.enter_context(
                    patch.object(app.store, name, AsyncMock(side_effect=AssertionError(f"unexpected {name}")))
                )
            payloads = await asyncio.gather(
                *(app.tokens.validate(result.access_token, TokenType.ACCESS) for _ in range(20)),
                *(app.service.authenticate(result.access_token) for _ in range(20)),
            )

        assert {p.subject for p in payloads} == {result.user_id}
        assert store.keys() == before


class TestComposition:
    def test_default_store_requires_user_repository(self, config, hasher) -> None:
        with pytest.raises(ValueError, match="users repository"):
            build_auth_service(config, hasher=hasher, output_handler=lambda line: None)

    @pytest.mark.asyncio
    async def test_es384_service(self, clock, hasher) -> None:
        provider = CryptoProvider.generate()
        config = ConfigLoader().load(
            environ={"JWT_ALGORITHM": "ES384", "JWT_PRIVATE_KEY": provider.private_key_pem()}
        )
        app = build_auth_service(
            config, store=MemoryKeyValueStore(clock), hasher=hasher, clock=clock, output_handler=lambda line: None
        )

        result = await app.service.register(EMAIL, PASSWORD)

        assert config.jwt_algorithm is SigningAlgorithm.ES384
        assert (await app.service.authenticate(result.access_token)).subject == result.user_id

    @pytest.mark.asyncio
    async def test_dispatcher_worker_and_close(
        self, app: AuthComponents, event_sink: MemoryEventSink
    ) -> None:
        app.dispatcher.start()

        await app.service.register(EMAIL, PASSWORD)
        await asyncio.wait_for(app.channel.join(), timeout=1.0)
        await app.close()

        assert [e.name for e in event_sink.events] == [USER_REGISTERED]
        assert app.dispatcher.running is False

    @pytest.mark.asyncio
    async def test_close_delivers_events_without_worker(
        self, app: AuthComponents, event_sink: MemoryEventSink
    ) -> None:
        await app.service.register(EMAIL, PASSWORD)

        await app.close()

        assert [e.name for e in event_sink.events] == [USER_REGISTERED]
        assert app.channel.pending == 0

    @pytest.mark.asyncio
    async def test_logs_are_json_and_masked(self, app: AuthComponents, log_lines: List[str]) -> None:
        result = await app.service.register(EMAIL, PASSWORD)
        await app.service.logout(result.session_id, result.refresh_token, user_id=result.user_id)

        entries = [json.loads(line) for line in log_lines]
        assert entries[0]["message"] == "Auth service built"
        assert {e["logger"] for e in entries} >= {"authstate", "authstate.session", "authstate.security"}
        assert all(result.refresh_token not in line for line in log_lines)
        assert all(PASSWORD not in line for line in log_lines)
