# CipherSafe - Embedded SQLite Backend
#
# One database file holding users, vaults and user_settings.
# Follows the per-operation connection pattern: every call opens a fresh
# WAL connection (core.db.connect) inside a worker thread, so the event
# loop never blocks on disk I/O.
#
# Writes that must be atomic run under BEGIN IMMEDIATE, which takes the
# database write lock up front. Two concurrent saves for the same user are
# therefore serialized, and the version compare happens under the lock.

import asyncio
import logging
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, Optional, Union
from uuid import uuid4

from ..core.db import connect as db_connect
from ..core.errors import AccountExists, StorageFailure, VersionConflict
from .base import (
    INITIAL_VAULT_VERSION,
    StorageBackend,
    UserRecord,
    UserSettings,
    VaultRecord,
)

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL,
        last_login TEXT,
        is_active INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS vaults (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
        payload TEXT NOT NULL,
        version INTEGER NOT NULL DEFAULT 1 CHECK (version >= 1),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_settings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
        theme TEXT NOT NULL DEFAULT 'dark',
        auto_lock INTEGER NOT NULL DEFAULT 30,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_user(row: sqlite3.Row) -> UserRecord:
    return UserRecord(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        created_at=_parse_ts(row["created_at"]),
        last_login=_parse_ts(row["last_login"]),
        is_active=bool(row["is_active"]),
    )


class SQLiteBackend(StorageBackend):
    """Embedded-file storage backend.

    Args:
        db_path: Path to the SQLite file. Parent directories are created.
    """

    name = "sqlite"

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)

    # ── Connection plumbing ──────────────────────────────────────────

    @contextmanager
    def _connection(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Fresh connection; sqlite/OS errors become StorageFailure."""
        try:
            with closing(db_connect(self.db_path, row_factory=True)) as conn:
                yield conn
        except (sqlite3.Error, OSError) as exc:
            logger.error("SQLite %s failed: %s", operation, exc)
            raise StorageFailure(detail=f"{operation}: {exc}") from exc

    @staticmethod
    @contextmanager
    def _immediate(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
        """BEGIN IMMEDIATE ... COMMIT, rolling back on any exception."""
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    # ── Lifecycle ────────────────────────────────────────────────────

    def _initialize_sync(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection("initialize") as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
        logger.info("SQLite backend ready at %s", self.db_path)

    async def initialize(self) -> None:
        try:
            await asyncio.to_thread(self._initialize_sync)
        except OSError as exc:
            raise StorageFailure(detail=f"initialize: {exc}") from exc

    async def close(self) -> None:
        # Connections are per-operation; nothing is held open.
        return None

    # ── Users ────────────────────────────────────────────────────────

    def _create_user_sync(
        self, email: str, password_hash: str, settings: UserSettings
    ) -> UserRecord:
        user_id = uuid4().hex
        now = _now()
        with self._connection("create_user") as conn:
            try:
                with self._immediate(conn):
                    conn.execute(
                        """INSERT INTO users (id, email, password_hash, created_at, is_active)
                           VALUES (?, ?, ?, ?, 1)""",
                        (user_id, email, password_hash, now),
                    )
                    conn.execute(
                        """INSERT INTO user_settings
                           (user_id, theme, auto_lock, created_at, updated_at)
                           VALUES (?, ?, ?, ?, ?)""",
                        (user_id, settings.theme, settings.auto_lock, now, now),
                    )
            except sqlite3.IntegrityError as exc:
                if "users.email" in str(exc):
                    raise AccountExists() from exc
                raise
        return UserRecord(
            id=user_id,
            email=email,
            password_hash=password_hash,
            created_at=datetime.fromisoformat(now),
        )

    async def create_user(
        self,
        email: str,
        password_hash: str,
        settings: UserSettings = UserSettings(),
    ) -> UserRecord:
        return await asyncio.to_thread(self._create_user_sync, email, password_hash, settings)

    def _get_user_by_email_sync(self, email: str) -> Optional[UserRecord]:
        with self._connection("get_user") as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return _row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        return await asyncio.to_thread(self._get_user_by_email_sync, email)

    def _record_login_sync(self, user_id: str, password_hash: Optional[str]) -> None:
        with self._connection("record_login") as conn:
            if password_hash is None:
                conn.execute(
                    "UPDATE users SET last_login = ? WHERE id = ?", (_now(), user_id)
                )
            else:
                conn.execute(
                    "UPDATE users SET last_login = ?, password_hash = ? WHERE id = ?",
                    (_now(), password_hash, user_id),
                )

    async def record_login(self, user_id: str, password_hash: Optional[str] = None) -> None:
        await asyncio.to_thread(self._record_login_sync, user_id, password_hash)

    # ── Vaults ───────────────────────────────────────────────────────

    def _get_vault_sync(self, user_id: str) -> VaultRecord:
        with self._connection("get_vault") as conn:
            row = conn.execute(
                """SELECT payload, version, created_at, updated_at
                   FROM vaults WHERE user_id = ?""",
                (user_id,),
            ).fetchone()
        if row is None:
            return VaultRecord.empty()
        return VaultRecord(
            payload=row["payload"],
            version=row["version"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    async def get_vault(self, user_id: str) -> VaultRecord:
        return await asyncio.to_thread(self._get_vault_sync, user_id)

    def _put_vault_sync(self, user_id: str, payload: str, expected_version: int) -> int:
        now = _now()
        with self._connection("put_vault") as conn:
            with self._immediate(conn):
                row = conn.execute(
                    "SELECT version FROM vaults WHERE user_id = ?", (user_id,)
                ).fetchone()

                if row is None:
                    new_version = INITIAL_VAULT_VERSION + 1
                    conn.execute(
                        """INSERT INTO vaults
                           (user_id, payload, version, created_at, updated_at)
                           VALUES (?, ?, ?, ?, ?)""",
                        (user_id, payload, new_version, now, now),
                    )
                    return new_version

                current = row["version"]
                if current != expected_version:
                    raise VersionConflict(current_version=current)

                cur = conn.execute(
                    """UPDATE vaults
                       SET payload = ?, version = version + 1, updated_at = ?
                       WHERE user_id = ? AND version = ?""",
                    (payload, now, user_id, expected_version),
                )
                if cur.rowcount != 1:
                    # Unreachable while the write lock is held.
                    raise VersionConflict(current_version=current)
                return expected_version + 1

    async def put_vault(self, user_id: str, payload: str, expected_version: int) -> int:
        return await asyncio.to_thread(self._put_vault_sync, user_id, payload, expected_version)

    # ── Settings ─────────────────────────────────────────────────────

    def _get_settings_sync(self, user_id: str) -> Optional[UserSettings]:
        with self._connection("get_settings") as conn:
            row = conn.execute(
                "SELECT theme, auto_lock FROM user_settings WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return UserSettings(theme=row["theme"], auto_lock=row["auto_lock"])

    async def get_settings(self, user_id: str) -> Optional[UserSettings]:
        return await asyncio.to_thread(self._get_settings_sync, user_id)

    def _put_settings_sync(self, user_id: str, settings: UserSettings) -> UserSettings:
        now = _now()
        with self._connection("put_settings") as conn:
            conn.execute(
                """INSERT INTO user_settings
                   (user_id, theme, auto_lock, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET
                       theme = excluded.theme,
                       auto_lock = excluded.auto_lock,
                       updated_at = excluded.updated_at""",
                (user_id, settings.theme, settings.auto_lock, now, now),
            )
        return settings

    async def put_settings(self, user_id: str, settings: UserSettings) -> UserSettings:
        return await asyncio.to_thread(self._put_settings_sync, user_id, settings)

    # ── Health ───────────────────────────────────────────────────────

    def _health_sync(self) -> Dict[str, int]:
        with self._connection("health") as conn:
            conn.execute("SELECT 1").fetchone()
            users = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
            vaults = conn.execute("SELECT COUNT(*) FROM vaults").fetchone()[0]
        return {"users": users, "vaults": vaults}

    async def health(self) -> Dict[str, int]:
        return await asyncio.to_thread(self._health_sync)
