"""
Tests unitaires pour RedisKeyValueStore (client simulé).
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from authstate.errors import StoreError, StoreTimeoutError, StoreUnavailableError
from authstate.storage import RedisKeyValueStore


def make_store(client: MagicMock) -> RedisKeyValueStore:
    return RedisKeyValueStore("redis://localhost:6379/0", socket_timeout=2.0, client=client)


class TestCommands:
    @pytest.mark.asyncio
    async def test_set_passes_ttl_and_nx(self) -> None:
        client = MagicMock()
        client.set = AsyncMock(return_value=True)
        store = make_store(client)

        assert await store.set("k", "v", ttl_seconds=30, only_if_absent=True) is True
        client.set.assert_awaited_once_with("k", "v", ex=30, nx=True)

    @pytest.mark.asyncio
    async def test_set_nx_on_existing_key_returns_false(self) -> None:
        client = MagicMock()
        client.set = AsyncMock(return_value=None)

        assert await make_store(client).set("k", "v", only_if_absent=True) is False

    @pytest.mark.asyncio
    async def test_set_rejects_non_positive_ttl(self) -> None:
        client = MagicMock()
        client.set = AsyncMock()

        with pytest.raises(ValueError):
            await make_store(client).set("k", "v", ttl_seconds=-1)
        client.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_many_uses_mget(self) -> None:
        client = MagicMock()
        client.mget = AsyncMock(return_value=["1", None])

        assert await make_store(client).get_many(["a", "b"]) == ["1", None]
        client.mget.assert_awaited_once_with(["a", "b"])

    @pytest.mark.asyncio
    async def test_get_many_empty_skips_call(self) -> None:
        client = MagicMock()
        client.mget = AsyncMock()

        assert await make_store(client).get_many([]) == []
        client.mget.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_incr_returns_int(self) -> None:
        client = MagicMock()
        client.incr = AsyncMock(return_value=3)

        assert await make_store(client).incr("rate-limit:login:10.0.0.1") == 3
        client.incr.assert_awaited_once_with("rate-limit:login:10.0.0.1")

    @pytest.mark.asyncio
    async def test_scan_collects_scan_iter(self) -> None:
        async def scan_iter(match: str, count: int):
            for key in ("p:1", "p:2"):
                yield key

        client = MagicMock()
        client.scan_iter = MagicMock(side_effect=scan_iter)

        assert await make_store(client).scan("p:*") == ["p:1", "p:2"]
        client.scan_iter.assert_called_once_with(match="p:*", count=RedisKeyValueStore.SCAN_COUNT)

    @pytest.mark.asyncio
    async def test_ttl_sentinels_map_to_none(self) -> None:
        client = MagicMock()
        client.ttl = AsyncMock(side_effect=[-2, -1, 42])
        store = make_store(client)

        assert await store.ttl("absent") is None
        assert await store.ttl("persistent") is None
        assert await store.ttl("volatile") == 42

    @pytest.mark.asyncio
    async def test_delete_and_exists_return_bools(self) -> None:
        client = MagicMock()
        client.delete = AsyncMock(return_value=1)
        client.exists = AsyncMock(return_value=0)
        store = make_store(client)

        assert await store.delete("k") is True
        assert await store.exists("k") is False


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_connection_error_is_unavailable(self) -> None:
        client = MagicMock()
        client.get = AsyncMock(side_effect=RedisConnectionError("refused"))

        with pytest.raises(StoreUnavailableError):
            await make_store(client).get("k")

    @pytest.mark.asyncio
    async def test_timeout_is_store_timeout(self) -> None:
        client = MagicMock()
        client.set = AsyncMock(side_effect=RedisTimeoutError("slow"))

        with pytest.raises(StoreTimeoutError) as exc_info:
            await make_store(client).set("k", "v")

        assert exc_info.value.timeout == 2.0

    @pytest.mark.asyncio
    async def test_other_redis_errors_are_store_errors(self) -> None:
        client = MagicMock()
        client.sadd = AsyncMock(side_effect=ResponseError("WRONGTYPE"))

        with pytest.raises(StoreError):
            await make_store(client).sadd("k", "a")
