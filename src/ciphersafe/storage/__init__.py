"""
Storage backends for CipherSafe.

Usage:
    backend = create_backend(config)
    await backend.initialize()
    ...
    await backend.close()
"""

from ..core.config import AppConfig
from .base import (
    DEFAULT_AUTO_LOCK,
    DEFAULT_THEME,
    INITIAL_VAULT_VERSION,
    VALID_THEMES,
    StorageBackend,
    UserRecord,
    UserSettings,
    VaultRecord,
)
from .sqlite_backend import SQLiteBackend


def create_backend(config: AppConfig) -> StorageBackend:
    """Instantiate the backend selected by configuration (not yet initialized)."""
    if config.backend == "postgres":
        # Imported lazily so the sqlite deployment does not need a server.
        from .postgres_backend import PostgresBackend

        return PostgresBackend(config.postgres)
    return SQLiteBackend(config.db_path)


__all__ = [
    "create_backend",
    "StorageBackend",
    "SQLiteBackend",
    "UserRecord",
    "UserSettings",
    "VaultRecord",
    "DEFAULT_THEME",
    "DEFAULT_AUTO_LOCK",
    "VALID_THEMES",
    "INITIAL_VAULT_VERSION",
]
