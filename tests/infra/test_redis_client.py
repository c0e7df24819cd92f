# tests/infra/test_redis_client.py
"""
Тесты для клиента Redis.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from pydantic import BaseModel

from src.infra.redis_client import RedisClient


class SampleModel(BaseModel):
    """Тестовая Pydantic модель."""
    id: int
    name: str
    active: bool = True


class TestRedisClient:
    """Тесты для RedisClient."""

    @pytest.fixture
    def redis_client(self) -> RedisClient:
        """Экземпляр RedisClient со сброшенным синглтоном."""
        RedisClient._instance = None
        RedisClient._client = None
        return RedisClient()

    @pytest.fixture
    def connected(self, redis_client: RedisClient) -> RedisClient:
        """Клиент с замоканным redis.asyncio.Redis."""
        redis_client._client = AsyncMock()
        return redis_client

    def test_singleton(self) -> None:
        RedisClient._instance = None

        assert RedisClient() is RedisClient()

    def test_client_not_initialized(self, redis_client: RedisClient) -> None:
        with pytest.raises(RuntimeError, match="Redis клиент не инициализирован"):
            _ = redis_client.client

    def test_make_key(self, redis_client: RedisClient) -> None:
        assert redis_client._make_key("location:index") == "carwash:location:index"

    def test_make_key_custom_namespace(self, redis_client: RedisClient) -> None:
        redis_client._namespace = "custom"
        assert redis_client._make_key("test_key") == "custom:test_key"

    @pytest.mark.asyncio
    async def test_set_nx_with_ttl(self, connected: RedisClient) -> None:
        """SET NX EX: окно троттлинга."""
        connected._client.set.return_value = True

        assert await connected.set("location:persist:d:b", "1", ttl=30, nx=True) is True
        connected._client.set.assert_awaited_once_with("carwash:location:persist:d:b", "1", ex=30, nx=True)

    @pytest.mark.asyncio
    async def test_set_nx_existing_key(self, connected: RedisClient) -> None:
        connected._client.set.return_value = None

        assert await connected.set("k", "v", ttl=30, nx=True) is False

    @pytest.mark.asyncio
    async def test_delete_without_keys(self, connected: RedisClient) -> None:
        assert await connected.delete() == 0
        connected._client.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_prefixes_keys(self, connected: RedisClient) -> None:
        connected._client.delete.return_value = 2

        assert await connected.delete("a", "b") == 2
        connected._client.delete.assert_awaited_once_with("carwash:a", "carwash:b")

    @pytest.mark.asyncio
    async def test_model_roundtrip(self, connected: RedisClient) -> None:
        model = SampleModel(id=1, name="wash")
        connected._client.set.return_value = True

        await connected.set_model("m", model, ttl=60)

        stored = connected._client.set.await_args.args[1]
        connected._client.get.return_value = stored
        assert await connected.get_model("m", SampleModel) == model

    @pytest.mark.asyncio
    async def test_get_model_missing(self, connected: RedisClient) -> None:
        connected._client.get.return_value = None

        assert await connected.get_model("m", SampleModel) is None

    @pytest.mark.asyncio
    async def test_get_model_corrupted(self, connected: RedisClient) -> None:
        """Повреждённая запись трактуется как отсутствующая."""
        connected._client.get.return_value = '{"id": "not-a-number"}'

        assert await connected.get_model("m", SampleModel) is None

    @pytest.mark.asyncio
    async def test_sorted_set_operations(self, connected: RedisClient) -> None:
        connected._client.zrangebyscore.return_value = ["d:idle"]

        await connected.zadd("location:index", {"d:idle": 100.0})
        members = await connected.zrangebyscore("location:index", "-inf", 200.0)
        await connected.zrem("location:index", *members)

        connected._client.zadd.assert_awaited_once_with("carwash:location:index", {"d:idle": 100.0})
        connected._client.zrem.assert_awaited_once_with("carwash:location:index", "d:idle")

    @pytest.mark.asyncio
    async def test_health_check(self, connected: RedisClient) -> None:
        connected._client.ping.return_value = True
        assert await connected.health_check() is True

        connected._client.ping.side_effect = ConnectionError("down")
        assert await connected.health_check() is False

    @pytest.mark.asyncio
    async def test_connect_uses_namespace(self, redis_client: RedisClient) -> None:
        fake = AsyncMock()
        with patch("src.infra.redis_client.redis.from_url", return_value=fake) as from_url:
            await redis_client.connect("redis://localhost:6379/0", max_connections=5, namespace="wash_test")

        from_url.assert_called_once_with("redis://localhost:6379/0", max_connections=5, decode_responses=True)
        fake.ping.assert_awaited_once()
        assert redis_client._make_key("x") == "wash_test:x"

    @pytest.mark.asyncio
    async def test_disconnect(self, connected: RedisClient) -> None:
        inner = connected._client

        await connected.disconnect()

        inner.aclose.assert_awaited_once()
        assert connected._client is None
