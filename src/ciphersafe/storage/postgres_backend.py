"""
PostgreSQL storage backend.

asyncpg connection pool with the same contract as the SQLite backend.
Atomicity is expressed server-side:

- create_user(): users + user_settings inserted in one transaction; the
  UNIQUE(email) constraint rejects the loser of a concurrent registration.
- put_vault(): INSERT ... ON CONFLICT (user_id) DO NOTHING creates the row
  if absent; otherwise a conditional UPDATE ... WHERE version = $n
  RETURNING version performs the compare-and-swap in one statement.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Optional
from uuid import uuid4

import asyncpg

from ..core.config import PostgresConfig
from ..core.errors import AccountExists, StorageFailure, VersionConflict
from .base import (
    INITIAL_VAULT_VERSION,
    StorageBackend,
    UserRecord,
    UserSettings,
    VaultRecord,
)

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email VARCHAR(255) UNIQUE NOT NULL,
    password_hash TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_login TIMESTAMPTZ,
    is_active BOOLEAN NOT NULL DEFAULT TRUE
);

CREATE TABLE IF NOT EXISTS vaults (
    id SERIAL PRIMARY KEY,
    user_id TEXT NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
    payload TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 1 CHECK (version >= 1),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS user_settings (
    id SERIAL PRIMARY KEY,
    user_id TEXT NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
    theme TEXT NOT NULL DEFAULT 'dark',
    auto_lock INTEGER NOT NULL DEFAULT 30,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_INSERT_USER = """
INSERT INTO users (id, email, password_hash, created_at, is_active)
VALUES ($1, $2, $3, $4, TRUE)
"""

_INSERT_SETTINGS = """
INSERT INTO user_settings (user_id, theme, auto_lock, created_at, updated_at)
VALUES ($1, $2, $3, $4, $4)
"""

_INSERT_VAULT_IF_ABSENT = """
INSERT INTO vaults (user_id, payload, version, created_at, updated_at)
VALUES ($1, $2, $3, NOW(), NOW())
ON CONFLICT (user_id) DO NOTHING
RETURNING version
"""

_CAS_UPDATE_VAULT = """
UPDATE vaults
SET payload = $2, version = version + 1, updated_at = NOW()
WHERE user_id = $1 AND version = $3
RETURNING version
"""

_UPSERT_SETTINGS = """
INSERT INTO user_settings (user_id, theme, auto_lock, created_at, updated_at)
VALUES ($1, $2, $3, NOW(), NOW())
ON CONFLICT (user_id)
DO UPDATE SET theme = EXCLUDED.theme,
              auto_lock = EXCLUDED.auto_lock,
              updated_at = NOW()
"""


def _row_to_user(row) -> UserRecord:
    return UserRecord(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
        last_login=row["last_login"],
        is_active=row["is_active"],
    )


class PostgresBackend(StorageBackend):
    """
    PostgreSQL connection pool backend.

    Attributes:
        config: Connection parameters
        pool: asyncpg pool (None until initialize() is called)
    """

    name = "postgres"

    def __init__(self, config: PostgresConfig):
        self.config = config
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> None:
        """
        Create the pool and the schema (idempotent).

        Raises:
            StorageFailure: If the server is unreachable or DDL fails
        """
        try:
            self.pool = await asyncpg.create_pool(
                host=self.config.host,
                port=self.config.port,
                database=self.config.database,
                user=self.config.user,
                password=self.config.password,
                min_size=self.config.min_size,
                max_size=self.config.max_size,
                timeout=30.0,
                command_timeout=self.config.command_timeout,
            )
            async with self.pool.acquire() as conn:
                await conn.execute(SCHEMA_SQL)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise StorageFailure(detail=f"initialize: {e}") from e

        logger.info(
            f"Database pool initialized: {self.config.user}@{self.config.host}:"
            f"{self.config.port}/{self.config.database}"
        )

    async def close(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("Database pool closed")

    @asynccontextmanager
    async def _acquire(self, operation: str) -> AsyncIterator["asyncpg.Connection"]:
        """
        Acquire a pooled connection; driver errors become StorageFailure.

        Raises:
            StorageFailure: pool not initialized, or any asyncpg/OS error
        """
        if not self.pool:
            raise StorageFailure(detail="Database pool not initialized")
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"PostgreSQL {operation} failed: {e}")
            raise StorageFailure(detail=f"{operation}: {e}") from e

    # ── Users ────────────────────────────────────────────────────────

    async def create_user(
        self,
        email: str,
        password_hash: str,
        settings: UserSettings = UserSettings(),
    ) -> UserRecord:
        user_id = uuid4().hex
        now = datetime.now(timezone.utc)
        async with self._acquire("create_user") as conn:
            try:
                async with conn.transaction():
                    await conn.execute(_INSERT_USER, user_id, email, password_hash, now)
                    await conn.execute(
                        _INSERT_SETTINGS, user_id, settings.theme, settings.auto_lock, now
                    )
            except asyncpg.UniqueViolationError as e:
                if e.constraint_name and "email" in e.constraint_name:
                    raise AccountExists() from e
                raise
        return UserRecord(id=user_id, email=email, password_hash=password_hash, created_at=now)

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        async with self._acquire("get_user") as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE email = $1", email)
        return _row_to_user(row) if row else None

    async def record_login(self, user_id: str, password_hash: Optional[str] = None) -> None:
        async with self._acquire("record_login") as conn:
            await conn.execute(
                """UPDATE users
                   SET last_login = NOW(), password_hash = COALESCE($2, password_hash)
                   WHERE id = $1""",
                user_id,
                password_hash,
            )

    # ── Vaults ───────────────────────────────────────────────────────

    async def get_vault(self, user_id: str) -> VaultRecord:
        async with self._acquire("get_vault") as conn:
            row = await conn.fetchrow(
                """SELECT payload, version, created_at, updated_at
                   FROM vaults WHERE user_id = $1""",
                user_id,
            )
        if row is None:
            return VaultRecord.empty()
        return VaultRecord(
            payload=row["payload"],
            version=row["version"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def put_vault(self, user_id: str, payload: str, expected_version: int) -> int:
        async with self._acquire("put_vault") as conn:
            async with conn.transaction():
                created = await conn.fetchval(
                    _INSERT_VAULT_IF_ABSENT, user_id, payload, INITIAL_VAULT_VERSION + 1
                )
                if created is not None:
                    return created

                new_version = await conn.fetchval(
                    _CAS_UPDATE_VAULT, user_id, payload, expected_version
                )
                if new_version is None:
                    current = await conn.fetchval(
                        "SELECT version FROM vaults WHERE user_id = $1", user_id
                    )
                    raise VersionConflict(current_version=current)
                return new_version

    # ── Settings ─────────────────────────────────────────────────────

    async def get_settings(self, user_id: str) -> Optional[UserSettings]:
        async with self._acquire("get_settings") as conn:
            row = await conn.fetchrow(
                "SELECT theme, auto_lock FROM user_settings WHERE user_id = $1",
                user_id,
            )
        if row is None:
            return None
        return UserSettings(theme=row["theme"], auto_lock=row["auto_lock"])

    async def put_settings(self, user_id: str, settings: UserSettings) -> UserSettings:
        async with self._acquire("put_settings") as conn:
            await conn.execute(_UPSERT_SETTINGS, user_id, settings.theme, settings.auto_lock)
        return settings

    # ── Health ───────────────────────────────────────────────────────

    async def health(self) -> Dict[str, int]:
        async with self._acquire("health") as conn:
            await conn.fetchval("SELECT 1")
            users = await conn.fetchval("SELECT COUNT(*) FROM users")
            vaults = await conn.fetchval("SELECT COUNT(*) FROM vaults")
        return {"users": users, "vaults": vaults}
