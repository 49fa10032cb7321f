"""
Vault and settings use cases.

Every operation starts at the AuthGateway, either here or in the HTTP
layer's authorize dependency, so an unauthenticated caller never reaches
the backend. The vault payload is opaque: it is stored and
returned byte for byte and never parsed.
"""

import logging
from typing import Any, Mapping, Optional, Union

from ..auth.credentials import is_utf8_encodable
from ..auth.gateway import AuthGateway
from ..auth.sessions import Identity
from ..core.errors import InvalidInput, VersionConflict
from ..core.logging import EventType, log_security_event
from ..storage.base import (
    INITIAL_VAULT_VERSION,
    VALID_THEMES,
    StorageBackend,
    UserSettings,
    VaultRecord,
)

logger = logging.getLogger(__name__)

# Either request headers or an identity the HTTP layer already verified.
Caller = Union[Mapping[str, str], Identity]

MIN_AUTO_LOCK = 1
MAX_AUTO_LOCK = 24 * 60  # minutes


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class VaultService:
    """Composes AuthGateway and the storage backend."""

    def __init__(self, gateway: AuthGateway, backend: StorageBackend):
        self.gateway = gateway
        self.backend = backend

    def _identity(self, caller: Caller) -> Identity:
        if isinstance(caller, Identity):
            return caller
        return self.gateway.authorize(caller)

    async def get_vault(self, caller: Caller) -> VaultRecord:
        """Return the caller's vault, or (None, 1) if never saved.

        Raises:
            TokenMissing, TokenInvalid, TokenExpired, StorageFailure
        """
        identity = self._identity(caller)
        return await self.backend.get_vault(identity.user_id)

    async def save_vault(
        self,
        caller: Caller,
        payload: Any,
        expected_version: Any = INITIAL_VAULT_VERSION,
    ) -> int:
        """Optimistic-concurrency save. Returns the new version.

        Raises:
            TokenMissing, TokenInvalid, TokenExpired
            InvalidInput: payload not a string, version not an int >= 1
            VersionConflict: caller must re-fetch and retry
            StorageFailure
        """
        identity = self._identity(caller)

        if not isinstance(payload, str):
            raise InvalidInput("Encrypted data is required")
        if not is_utf8_encodable(payload):
            raise InvalidInput("Encrypted data contains invalid characters")
        if not _is_int(expected_version) or expected_version < INITIAL_VAULT_VERSION:
            raise InvalidInput("expectedVersion must be a positive integer")

        try:
            new_version = await self.backend.put_vault(
                identity.user_id, payload, expected_version
            )
        except VersionConflict as exc:
            log_security_event(
                EventType.VAULT_CONFLICT,
                "Vault save rejected: stale version",
                level="warning",
                user_id=identity.user_id,
                expected_version=expected_version,
                current_version=exc.current_version,
            )
            raise

        created = new_version == INITIAL_VAULT_VERSION + 1
        log_security_event(
            EventType.VAULT_CREATED if created else EventType.VAULT_SAVED,
            "Vault created" if created else "Vault saved",
            user_id=identity.user_id,
            version=new_version,
            size=len(payload),
        )
        return new_version

    async def get_settings(self, caller: Caller) -> UserSettings:
        """Return stored settings, or defaults if the row is missing."""
        identity = self._identity(caller)
        settings = await self.backend.get_settings(identity.user_id)
        return settings or UserSettings()

    async def update_settings(
        self,
        caller: Caller,
        theme: Optional[str] = None,
        auto_lock: Optional[int] = None,
    ) -> UserSettings:
        """Change theme and/or auto-lock minutes; omitted fields keep their value.

        Raises:
            InvalidInput: unknown theme or auto_lock out of range
        """
        identity = self._identity(caller)

        if theme is not None and theme not in VALID_THEMES:
            raise InvalidInput(f"theme must be one of: {', '.join(VALID_THEMES)}")
        if auto_lock is not None and (
            not _is_int(auto_lock) or not MIN_AUTO_LOCK <= auto_lock <= MAX_AUTO_LOCK
        ):
            raise InvalidInput(
                f"autoLock must be between {MIN_AUTO_LOCK} and {MAX_AUTO_LOCK} minutes"
            )

        current = await self.backend.get_settings(identity.user_id) or UserSettings()
        updated = UserSettings(
            theme=theme if theme is not None else current.theme,
            auto_lock=auto_lock if auto_lock is not None else current.auto_lock,
        )
        result = await self.backend.put_settings(identity.user_id, updated)
        log_security_event(
            EventType.SETTINGS_UPDATED, "Settings updated", user_id=identity.user_id
        )
        return result
