# CipherSafe - Credential Store
#
# Owns user identity records and password verification.
#
# Security:
# - Raw passwords are hashed before they reach the backend and never logged
# - Unknown email and wrong password raise the same InvalidCredentials;
#   only the internal log line tells them apart
# - Unknown emails still pay for one hash verification (timing parity)

import asyncio
import logging
import re
from typing import Any

from ..core.errors import AccountExists, InvalidCredentials, InvalidInput
from ..core.logging import EventType, log_security_event
from ..storage.base import StorageBackend, UserRecord, UserSettings
from .passwords import PasswordHasher

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_EMAIL_LENGTH = 255


def is_utf8_encodable(value: str) -> bool:
    """False for strings holding lone surrogates (legal in JSON, not in UTF-8)."""
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def validate_email(email: Any) -> str:
    if not isinstance(email, str) or not email:
        raise InvalidInput("Email and password are required")
    if (
        len(email) > MAX_EMAIL_LENGTH
        or not EMAIL_PATTERN.match(email)
        or not is_utf8_encodable(email)
    ):
        raise InvalidInput("Please provide a valid email address")
    return email


def validate_password(password: Any, min_length: int) -> str:
    if not isinstance(password, str) or not password:
        raise InvalidInput("Email and password are required")
    if len(password) < min_length:
        raise InvalidInput(f"Password must be at least {min_length} characters long")
    if not is_utf8_encodable(password):
        raise InvalidInput("Password contains invalid characters")
    return password


class CredentialStore:
    """User registration and password verification.

    Args:
        backend: Storage backend holding the users table
        hasher: Password hasher (cost comes from configuration)
        min_password_length: Minimum accepted password length at registration
    """

    def __init__(
        self,
        backend: StorageBackend,
        hasher: PasswordHasher,
        min_password_length: int = 6,
    ):
        self.backend = backend
        self.hasher = hasher
        self.min_password_length = min_password_length

    async def register(self, email: str, password: str) -> UserRecord:
        """Create a user with default settings.

        Returns:
            The new UserRecord

        Raises:
            InvalidInput: Malformed email or password too short
            AccountExists: Email already registered
            StorageFailure: Backend error (nothing is left half-created)
        """
        validate_email(email)
        validate_password(password, self.min_password_length)

        password_hash = await asyncio.to_thread(self.hasher.hash, password)

        try:
            user = await self.backend.create_user(email, password_hash, UserSettings())
        except AccountExists:
            log_security_event(
                EventType.REGISTRATION_REJECTED,
                "Registration rejected: email already registered",
                level="warning",
            )
            raise

        log_security_event(
            EventType.USER_REGISTERED,
            "User registered",
            user_id=user.id,
        )
        return user

    async def verify(self, email: str, password: str) -> UserRecord:
        """Check credentials and stamp last_login.

        A hash stored under a different iteration count is upgraded to the
        configured cost on successful login.

        Raises:
            InvalidInput: Email or password missing
            InvalidCredentials: Unknown email, wrong password, inactive user
        """
        if not isinstance(email, str) or not email or not isinstance(password, str) or not password:
            raise InvalidInput("Email and password are required")
        if not is_utf8_encodable(email) or not is_utf8_encodable(password):
            raise InvalidInput("Email and password contain invalid characters")

        user = await self.backend.get_user_by_email(email)

        if user is None:
            await asyncio.to_thread(self.hasher.verify_dummy, password)
            raise self._login_failed("unknown_email")

        if not await asyncio.to_thread(self.hasher.verify, password, user.password_hash):
            raise self._login_failed("wrong_password", user_id=user.id)

        if not user.is_active:
            raise self._login_failed("inactive", user_id=user.id)

        new_hash = None
        if self.hasher.needs_rehash(user.password_hash):
            new_hash = await asyncio.to_thread(self.hasher.hash, password)
        await self.backend.record_login(user.id, password_hash=new_hash)
        log_security_event(EventType.LOGIN_SUCCEEDED, "Login successful", user_id=user.id)
        return user

    @staticmethod
    def _login_failed(reason: str, **details: Any) -> InvalidCredentials:
        log_security_event(
            EventType.LOGIN_FAILED,
            "Login failed",
            level="warning",
            reason=reason,
            **details,
        )
        return InvalidCredentials()
