"""Tests for engine and broker connection settings."""

from unittest.mock import AsyncMock, MagicMock, patch

import redis.asyncio as redis

from appointease.config import redis as redis_config
from appointease.config.database import driver_connect_args
from appointease.config.settings import get_settings


class TestDriverConnectArgs:
    def test_asyncpg_gets_statement_timeout(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "DB_STATEMENT_TIMEOUT_SECONDS", 7.5)
        args = driver_connect_args("postgresql+asyncpg://user:pw@db:5432/appointease")
        assert args == {"command_timeout": 7.5}

    def test_sqlite_gets_nothing(self):
        assert driver_connect_args("sqlite+aiosqlite:///:memory:") == {}


class TestPingBroker:
    async def test_healthy(self):
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)
        with patch.object(redis_config, "get_redis", AsyncMock(return_value=client)):
            assert await redis_config.ping_broker() == "healthy"

    async def test_unreachable_is_reported_not_raised(self):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=redis.ConnectionError("connection refused"))
        with patch.object(redis_config, "get_redis", AsyncMock(return_value=client)):
            status = await redis_config.ping_broker()
        assert status.startswith("unhealthy")
        assert "connection refused" in status

    async def test_close_pool_resets(self):
        pool = MagicMock()
        pool.disconnect = AsyncMock()
        with patch.object(redis_config, "_redis_pool", pool):
            await redis_config.close_redis_pool()
            assert redis_config._redis_pool is None
        pool.disconnect.assert_awaited_once()
