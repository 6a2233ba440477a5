"""
AuthState - Rate Limiter

Compteurs à fenêtre fixe en stockage partagé:
    rate-limit:{action}:{client}          compteur, TTL = fenêtre
    rate-limit:block:{action}:{client}    "1", TTL = durée du blocage

Le compteur et le blocage sont deux clés indépendantes: deux requêtes
simultanées peuvent dépasser la limite d'une unité avant le blocage.
"""

from typing import Dict, Mapping, Optional

from ..core.interfaces import AuthConfig
from ..errors import RateLimitExceededError, StoreError
from ..logging.interfaces import IStructuredLogger
from ..logging.structured_logger import StructuredLogger
from ..storage.interfaces import IKeyValueStore
from .interfaces import IRateLimiter, RateLimitAction, RateLimitOptions

RATE_LIMIT_PREFIX = "rate-limit:"
BLOCK_PREFIX = "rate-limit:block:"


def counter_key(action: RateLimitAction, key: str) -> str:
    return f"{RATE_LIMIT_PREFIX}{action.value}:{key}"


def block_key(action: RateLimitAction, key: str) -> str:
    return f"{BLOCK_PREFIX}{action.value}:{key}"


class RateLimiter(IRateLimiter):
    """
    Limiteur par client et par action.

    Example:
        limiter = RateLimiter.from_config(kv, config)
        await limiter.hit("10.0.0.1", RateLimitAction.LOGIN)
    """

    DEFAULT_OPTIONS = RateLimitOptions(max_attempts=5, window_seconds=60, block_seconds=300)

    def __init__(
        self,
        store: IKeyValueStore,
        options: Mapping[RateLimitAction, RateLimitOptions],
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        """
        Args:
            store: Stockage partagé
            options: Limites par action (DEFAULT_OPTIONS pour une action absente)
            logger: Logger structuré
        """
        self._store = store
        self._options: Dict[RateLimitAction, RateLimitOptions] = dict(options)
        self._logger = logger or StructuredLogger("authstate.ratelimit")

    @classmethod
    def from_config(
        cls,
        store: IKeyValueStore,
        config: AuthConfig,
        logger: Optional[IStructuredLogger] = None,
    ) -> "RateLimiter":
        options = {
            RateLimitAction.LOGIN: RateLimitOptions(
                max_attempts=config.rate_limit_login_max_attempts,
                window_seconds=config.rate_limit_login_window,
                block_seconds=config.rate_limit_login_block,
            ),
            RateLimitAction.REGISTRATION: RateLimitOptions(
                max_attempts=config.rate_limit_registration_max_attempts,
                window_seconds=config.rate_limit_registration_window,
                block_seconds=config.rate_limit_registration_block,
            ),
            RateLimitAction.PASSWORD_RESET: RateLimitOptions(
                max_attempts=config.rate_limit_password_reset_max_attempts,
                window_seconds=config.rate_limit_password_reset_window,
                block_seconds=config.rate_limit_password_reset_block,
            ),
        }
        return cls(store, options, logger=logger)

    def options_for(self, action: RateLimitAction) -> RateLimitOptions:
        return self._options.get(action, self.DEFAULT_OPTIONS)

    async def is_rate_limited(self, key: str, action: RateLimitAction) -> bool:
        options = self.options_for(action)
        try:
            if await self._store.exists(block_key(action, key)):
                return True

            raw = await self._store.get(counter_key(action, key))
            attempts = int(raw) if raw else 0
            if attempts < options.max_attempts:
                return False

            await self._store.set(block_key(action, key), "1", ttl_seconds=options.block_seconds)
            self._logger.warn(
                "Rate limit exceeded, client blocked",
                client=key,
                action=action.value,
                attempts=attempts,
                block_seconds=options.block_seconds,
            )
            return True
        except (StoreError, ValueError) as e:
            self._logger.error("Rate limit check failed", client=key, action=action.value, error=str(e))
            return False

    async def increment(self, key: str, action: RateLimitAction) -> int:
        options = self.options_for(action)
        try:
            count = await self._store.incr(counter_key(action, key))
            if count == 1:
                await self._store.expire(counter_key(action, key), options.window_seconds)
        except StoreError as e:
            self._logger.error("Rate limit increment failed", client=key, action=action.value, error=str(e))
            return 0

        self._logger.debug(
            "Rate limit counter incremented",
            client=key,
            action=action.value,
            count=count,
            max_attempts=options.max_attempts,
        )
        return count

    async def reset(self, key: str, action: RateLimitAction) -> bool:
        try:
            await self._store.delete(counter_key(action, key))
            await self._store.delete(block_key(action, key))
        except StoreError as e:
            self._logger.error("Rate limit reset failed", client=key, action=action.value, error=str(e))
            return False
        return True

    async def hit(self, key: str, action: RateLimitAction) -> None:
        if await self.is_rate_limited(key, action):
            raise RateLimitExceededError(action.value)
        await self.increment(key, action)
