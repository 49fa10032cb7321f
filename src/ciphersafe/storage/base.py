"""
Storage backend interface and record types.

Both backends (embedded SQLite file, PostgreSQL server) implement
StorageBackend. Use cases only ever talk to this interface, so swapping the
backend is a configuration change.

Atomicity contract every backend must honour:
- create_user() inserts the user AND its default settings in one
  transaction; an email uniqueness violation raises AccountExists and
  leaves nothing behind.
- put_vault() performs read-version / compare / write-and-increment as one
  atomic step per user.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

DEFAULT_THEME = "dark"
DEFAULT_AUTO_LOCK = 30  # minutes
VALID_THEMES = ("dark", "light")

# Version reported for a user who has never saved a vault.
INITIAL_VAULT_VERSION = 1


@dataclass(frozen=True)
class UserRecord:
    id: str
    email: str
    password_hash: str
    created_at: datetime
    last_login: Optional[datetime] = None
    is_active: bool = True

    def __repr__(self) -> str:
        return f"UserRecord(id={self.id!r}, email={self.email!r}, is_active={self.is_active})"


@dataclass(frozen=True)
class VaultRecord:
    """A user's vault. payload is None when nothing was ever saved."""

    payload: Optional[str]
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def exists(self) -> bool:
        return self.payload is not None

    @classmethod
    def empty(cls) -> "VaultRecord":
        return cls(payload=None, version=INITIAL_VAULT_VERSION)


@dataclass(frozen=True)
class UserSettings:
    theme: str = DEFAULT_THEME
    auto_lock: int = DEFAULT_AUTO_LOCK

    def to_dict(self) -> Dict[str, Any]:
        return {"theme": self.theme, "autoLock": self.auto_lock}


class StorageBackend(ABC):
    """Persistence for users, vaults and settings."""

    name = "abstract"

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections and create tables if missing (idempotent)."""

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""

    # ── Users ────────────────────────────────────────────────────────

    @abstractmethod
    async def create_user(
        self,
        email: str,
        password_hash: str,
        settings: UserSettings = UserSettings(),
    ) -> UserRecord:
        """Atomically insert a user and their settings.

        Raises:
            AccountExists: email already registered
            StorageFailure: any other store error
        """

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def record_login(self, user_id: str, password_hash: Optional[str] = None) -> None:
        """Set last_login to now, replacing the password hash if one is given."""

    # ── Vaults ───────────────────────────────────────────────────────

    @abstractmethod
    async def get_vault(self, user_id: str) -> VaultRecord:
        """Return the user's vault, or VaultRecord.empty()."""

    @abstractmethod
    async def put_vault(self, user_id: str, payload: str, expected_version: int) -> int:
        """Compare-and-swap save. Returns the new version.

        Raises:
            VersionConflict: a vault exists and its version != expected_version
            StorageFailure: any other store error
        """

    # ── Settings ─────────────────────────────────────────────────────

    @abstractmethod
    async def get_settings(self, user_id: str) -> Optional[UserSettings]:
        ...

    @abstractmethod
    async def put_settings(self, user_id: str, settings: UserSettings) -> UserSettings:
        """Upsert the user's settings row."""

    # ── Health ───────────────────────────────────────────────────────

    @abstractmethod
    async def health(self) -> Dict[str, int]:
        """Probe the store. Returns {"users": n, "vaults": n}.

        Raises:
            StorageFailure: store unreachable
        """
