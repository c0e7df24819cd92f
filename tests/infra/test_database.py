# tests/infra/test_database.py
"""
Тесты для менеджера базы данных.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import asyncpg
import pytest

from src.common.errors import ConflictError, NotFoundError, PersistenceError
from src.infra.database import (
    DatabaseManager,
    record_to_dict,
    retry_on_connection_error,
    translate_db_errors,
)


class TestDatabaseManager:
    """Тесты для DatabaseManager."""

    @pytest.fixture
    def db_manager(self) -> DatabaseManager:
        """Экземпляр DatabaseManager со сброшенным синглтоном."""
        DatabaseManager._instance = None
        DatabaseManager._pool = None
        return DatabaseManager()

    def test_singleton(self) -> None:
        DatabaseManager._instance = None

        assert DatabaseManager() is DatabaseManager()

    def test_pool_not_initialized(self, db_manager: DatabaseManager) -> None:
        with pytest.raises(RuntimeError, match="Пул соединений не инициализирован"):
            _ = db_manager.pool

    @pytest.mark.asyncio
    async def test_connect_creates_pool_once(self, db_manager: DatabaseManager) -> None:
        pool = MagicMock()
        with patch("src.infra.database.asyncpg.create_pool", AsyncMock(return_value=pool)) as create_pool:
            await db_manager.connect("postgresql://u:p@localhost/db", min_size=1, max_size=2)
            await db_manager.connect("postgresql://u:p@localhost/db")

        create_pool.assert_awaited_once()
        assert db_manager.pool is pool

    @pytest.mark.asyncio
    async def test_disconnect(self, db_manager: DatabaseManager) -> None:
        pool = MagicMock()
        pool.close = AsyncMock()
        db_manager._pool = pool

        await db_manager.disconnect()

        pool.close.assert_awaited_once()
        assert db_manager._pool is None

    @pytest.mark.asyncio
    async def test_lock_key_uses_transaction_advisory_lock(self) -> None:
        conn = AsyncMock()

        await DatabaseManager.lock_key(conn, "queue:cw-1")

        conn.execute.assert_awaited_once_with("SELECT pg_advisory_xact_lock(hashtext($1))", "queue:cw-1")

    @pytest.mark.asyncio
    async def test_ensure_transaction_reuses_connection(self, db_manager: DatabaseManager) -> None:
        outer = AsyncMock()

        async with db_manager.ensure_transaction(outer) as conn:
            assert conn is outer

    @pytest.mark.asyncio
    async def test_health_check_failure(self, db_manager: DatabaseManager) -> None:
        """Без пула health check возвращает False, а не падает."""
        assert await db_manager.health_check() is False


class TestRetryOnConnectionError:
    """Тесты декоратора retry."""

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self) -> None:
        calls = {"n": 0}

        @retry_on_connection_error(max_attempts=3, delay=0)
        async def flaky() -> str:
            calls["n"] += 1
            if calls["n"] < 3:
                raise ConnectionRefusedError("refused")
            return "ok"

        assert await flaky() == "ok"
        assert calls["n"] == 3

    @pytest.mark.asyncio
    async def test_raises_after_attempts(self) -> None:
        @retry_on_connection_error(max_attempts=2, delay=0)
        async def broken() -> None:
            raise ConnectionRefusedError("refused")

        with pytest.raises(ConnectionRefusedError):
            await broken()

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self) -> None:
        calls = {"n": 0}

        @retry_on_connection_error(max_attempts=3, delay=0)
        async def failing() -> None:
            calls["n"] += 1
            raise ValueError("bad query")

        with pytest.raises(ValueError):
            await failing()
        assert calls["n"] == 1


class TestTranslateDbErrors:
    """Перевод ошибок asyncpg в ошибки домена."""

    @pytest.mark.asyncio
    async def test_unique_violation_is_conflict(self) -> None:
        with pytest.raises(ConflictError):
            async with translate_db_errors("Queue insert"):
                raise asyncpg.UniqueViolationError("duplicate key value")

    @pytest.mark.asyncio
    async def test_postgres_error_is_persistence(self) -> None:
        with pytest.raises(PersistenceError) as exc_info:
            async with translate_db_errors("Location save"):
                raise asyncpg.PostgresError("boom")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_connection_error_is_persistence(self) -> None:
        with pytest.raises(PersistenceError):
            async with translate_db_errors("Location save"):
                raise ConnectionRefusedError("refused")

    @pytest.mark.asyncio
    async def test_domain_errors_pass_through(self) -> None:
        with pytest.raises(NotFoundError):
            async with translate_db_errors("Booking read"):
                raise NotFoundError("Booking not found")


class TestRecordToDict:
    """Тесты конвертации записей."""

    def test_uuid_values_become_strings(self) -> None:
        record = {
            "id": UUID("55555555-5555-4555-8555-555555555555"),
            "queue_position": 2,
            "notes": None,
        }

        result = record_to_dict(record)

        assert result == {
            "id": "55555555-5555-4555-8555-555555555555",
            "queue_position": 2,
            "notes": None,
        }
