# CipherSafe - Error Taxonomy
#
# Every failure path ends in one of these. Each kind carries a stable
# `code` (rendered to clients), an HTTP status, and a public message that
# never includes internal diagnostics.

from typing import Any, Dict, Optional


class CipherSafeError(Exception):
    """Base class for all user-visible CipherSafe failures."""

    code = "InternalError"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Public JSON body for this error."""
        return {"success": False, "error": self.message, "code": self.code}


class InvalidInput(CipherSafeError):
    """Malformed email, short password, missing or mistyped field."""
    code = "InvalidInput"
    status_code = 400
    default_message = "Invalid input"


class AccountExists(CipherSafeError):
    """Registration attempted with an email that is already taken."""
    code = "AccountExists"
    status_code = 400
    default_message = "An account with this email already exists"


class InvalidCredentials(CipherSafeError):
    """Unknown email or wrong password. Deliberately uninformative."""
    code = "InvalidCredentials"
    status_code = 401
    default_message = "Invalid email or password"


class TokenMissing(CipherSafeError):
    code = "TokenMissing"
    status_code = 401
    default_message = "Access token required"


class TokenInvalid(CipherSafeError):
    code = "TokenInvalid"
    status_code = 403
    default_message = "Invalid session token. Please login again."


class TokenExpired(CipherSafeError):
    code = "TokenExpired"
    status_code = 403
    default_message = "Session expired. Please login again."


class VersionConflict(CipherSafeError):
    """The stored vault moved on since the caller last fetched it."""

    code = "VersionConflict"
    status_code = 409
    default_message = "Vault was modified elsewhere. Reload and retry."

    def __init__(self, current_version: int, message: Optional[str] = None):
        self.current_version = current_version
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["currentVersion"] = self.current_version
        return body


class StorageFailure(CipherSafeError):
    """Backing store error. Detail is logged, not returned in production."""

    code = "StorageFailure"
    status_code = 500
    default_message = "Storage unavailable. Please try again."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(message)


class ConfigError(Exception):
    """Raised at startup when configuration values are unusable."""
