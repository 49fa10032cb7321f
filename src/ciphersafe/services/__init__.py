"""Use-case layer composing auth and storage."""

from .accounts import AccountService, AuthResult
from .vault import VaultService

__all__ = ["AccountService", "AuthResult", "VaultService"]
