"""
Tests for PostgresBackend error mapping and compare-and-swap flow.

No server is needed: the asyncpg pool and connection are replaced with
mocks, the way the repository tests patch their database layer.
"""

from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from ciphersafe.core.config import AppConfig, PostgresConfig
from ciphersafe.core.errors import AccountExists, StorageFailure, VersionConflict
from ciphersafe.storage import SQLiteBackend, UserSettings, create_backend
from ciphersafe.storage.postgres_backend import PostgresBackend


def _async_cm(value):
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=value)
    cm.__aexit__ = AsyncMock(return_value=False)
    return cm


@pytest.fixture
def conn():
    conn = MagicMock()
    conn.execute = AsyncMock()
    conn.fetchval = AsyncMock()
    conn.fetchrow = AsyncMock()
    conn.transaction = MagicMock(return_value=_async_cm(None))
    return conn


@pytest.fixture
def backend(conn):
    backend = PostgresBackend(PostgresConfig())
    pool = MagicMock()
    pool.acquire = MagicMock(return_value=_async_cm(conn))
    pool.close = AsyncMock()
    backend.pool = pool
    return backend


class TestSelection:
    def test_default_is_sqlite(self, tmp_path):
        config = AppConfig(secret_key="k", db_path=tmp_path / "x.db")
        assert isinstance(create_backend(config), SQLiteBackend)

    def test_postgres(self):
        config = AppConfig(secret_key="k", backend="postgres")
        backend = create_backend(config)
        assert isinstance(backend, PostgresBackend)
        assert backend.pool is None


class TestUsers:
    @pytest.mark.asyncio
    async def test_create_user_inserts_user_and_settings(self, backend, conn):
        user = await backend.create_user("a@example.com", "hash", UserSettings())
        assert user.email == "a@example.com"
        assert conn.execute.await_count == 2
        conn.transaction.assert_called_once()

    @pytest.mark.asyncio
    async def test_duplicate_email(self, backend, conn):
        exc = asyncpg.UniqueViolationError("duplicate key value")
        exc.constraint_name = "users_email_key"
        conn.execute.side_effect = exc
        with pytest.raises(AccountExists):
            await backend.create_user("a@example.com", "hash")

    @pytest.mark.asyncio
    async def test_other_unique_violation_is_storage_failure(self, backend, conn):
        exc = asyncpg.UniqueViolationError("duplicate key value")
        exc.constraint_name = "users_pkey"
        conn.execute.side_effect = exc
        with pytest.raises(StorageFailure):
            await backend.create_user("a@example.com", "hash")

    @pytest.mark.asyncio
    async def test_record_login_passes_new_hash(self, backend, conn):
        await backend.record_login("u1", password_hash="new-hash")
        args = conn.execute.await_args.args
        assert "COALESCE" in args[0]
        assert args[1:] == ("u1", "new-hash")

    @pytest.mark.asyncio
    async def test_record_login_keeps_hash(self, backend, conn):
        await backend.record_login("u1")
        assert conn.execute.await_args.args[1:] == ("u1", None)

    @pytest.mark.asyncio
    async def test_unknown_email(self, backend, conn):
        conn.fetchrow.return_value = None
        assert await backend.get_user_by_email("nobody@example.com") is None


class TestPutVault:
    @pytest.mark.asyncio
    async def test_first_save_creates_version_two(self, backend, conn):
        conn.fetchval.side_effect = [2]
        assert await backend.put_vault("u1", "blob", 1) == 2

    @pytest.mark.asyncio
    async def test_matching_version_increments(self, backend, conn):
        # insert-if-absent finds an existing row, CAS update succeeds
        conn.fetchval.side_effect = [None, 3]
        assert await backend.put_vault("u1", "blob", 2) == 3

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self, backend, conn):
        conn.fetchval.side_effect = [None, None, 5]
        with pytest.raises(VersionConflict) as excinfo:
            await backend.put_vault("u1", "blob", 2)
        assert excinfo.value.current_version == 5

    @pytest.mark.asyncio
    async def test_driver_error_is_storage_failure(self, backend, conn):
        conn.fetchval.side_effect = asyncpg.InterfaceError("connection closed")
        with pytest.raises(StorageFailure):
            await backend.put_vault("u1", "blob", 1)


class TestVaultAndSettingsReads:
    @pytest.mark.asyncio
    async def test_absent_vault(self, backend, conn):
        conn.fetchrow.return_value = None
        vault = await backend.get_vault("u1")
        assert (vault.payload, vault.version) == (None, 1)

    @pytest.mark.asyncio
    async def test_settings_row(self, backend, conn):
        conn.fetchrow.return_value = {"theme": "light", "auto_lock": 10}
        assert await backend.get_settings("u1") == UserSettings("light", 10)


class TestPool:
    @pytest.mark.asyncio
    async def test_not_initialized(self):
        backend = PostgresBackend(PostgresConfig())
        with pytest.raises(StorageFailure):
            await backend.get_vault("u1")

    @pytest.mark.asyncio
    async def test_health(self, backend, conn):
        conn.fetchval.side_effect = [1, 4, 2]
        assert await backend.health() == {"users": 4, "vaults": 2}

    @pytest.mark.asyncio
    async def test_close(self, backend):
        pool = backend.pool
        await backend.close()
        pool.close.assert_awaited_once()
        assert backend.pool is None
