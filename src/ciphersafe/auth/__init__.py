"""
Authentication: password hashing, credential store, session tokens and the
request-time bearer gateway.
"""

from .credentials import CredentialStore, validate_email, validate_password
from .gateway import AuthGateway
from .passwords import PasswordHasher
from .sessions import Identity, SessionIssuer

__all__ = [
    "AuthGateway",
    "CredentialStore",
    "Identity",
    "PasswordHasher",
    "SessionIssuer",
    "validate_email",
    "validate_password",
]
